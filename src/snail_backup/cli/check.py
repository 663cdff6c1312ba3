"""Check command: Verify the external commands a run depends on."""

import argparse
import logging
import shutil

from ..__logger__ import create_logger
from .common import get_log_level

logger = logging.getLogger(__name__)

REQUIRED_COMMANDS = ("rsync", "mount", "umount")
OPTIONAL_COMMANDS = ("ssh",)


def find_missing_commands(commands=REQUIRED_COMMANDS) -> list[str]:
    missing = []
    for cmd in commands:
        if shutil.which(cmd):
            logger.info("check command %s ... OK", cmd)
        else:
            logger.warning("check command %s ... FAILED", cmd)
            missing.append(cmd)
    return missing


def execute_check(args: argparse.Namespace) -> int:
    """Execute the check command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (1 if a required command is missing)
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    missing = find_missing_commands(REQUIRED_COMMANDS)
    missing_optional = find_missing_commands(OPTIONAL_COMMANDS)

    if missing_optional:
        logger.warning("Missing optional commands: %s", " ".join(missing_optional))
    if missing:
        logger.error("Missing commands: %s", " ".join(missing))
        return 1
    return 0
