"""Prune command: Apply the retention policy without running a backup."""

import argparse
import logging
import time

from .. import __util__
from ..__logger__ import create_logger
from ..config import ConfigError
from ..lock import JobLock
from ..retention import apply_retention
from .common import get_log_level, load_job_config

logger = logging.getLogger(__name__)


def execute_prune(args: argparse.Namespace) -> int:
    """Execute the prune command.

    Cleanup runs under the job lock so it can never race a backup of the
    same job.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    try:
        config = load_job_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    logger.info(__util__.log_heading(f"Pruning job {config.identifier} at {time.ctime()}"))

    try:
        with JobLock(config.identifier, config.run_root):
            result = apply_retention(config.job_folder, config.log_folder, config.retention)
    except __util__.AbortError as e:
        logger.error("%s", e)
        return 1

    logger.info(
        "Removed %d failed backup(s), %d old backup(s), %d log file(s)",
        len(result.failed_removed),
        len(result.snapshots_removed),
        len(result.logs_removed),
    )
    if result.errors > 0:
        logger.warning("Encountered %d error(s)", result.errors)
        return 1
    return 0
