"""Run command: Execute one backup of the configured job."""

import argparse
import logging
import os

from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.runner import run_job
from .common import get_log_level, load_job_config

logger = logging.getLogger(__name__)


def execute_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    if not getattr(args, "no_root_check", False) and os.geteuid() != 0:
        logger.error("This program must be run as root (UID 0)")
        return 1

    try:
        config = load_job_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    return run_job(config)
