"""Shared CLI utilities and argument parsers."""

import argparse
import logging

from ..config import JobConfig, apply_overrides, find_config_file, load_config
from ..config.loader import collect_warnings

logger = logging.getLogger(__name__)


def create_global_parser() -> argparse.ArgumentParser:
    """Create a parser with global options that can be used as a parent."""
    parser = argparse.ArgumentParser(add_help=False)
    add_verbosity_args(parser)
    return parser


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def parse_bool(value: str) -> bool:
    """argparse type accepting exactly 'true' or 'false'."""
    if value == "true":
        return True
    if value == "false":
        return False
    raise argparse.ArgumentTypeError(
        f"invalid value: '{value}' (must be 'true' or 'false')"
    )


def parse_positive_int(value: str) -> int:
    """argparse type accepting a positive decimal integer."""
    if not value.isdigit() or value.startswith("0"):
        raise argparse.ArgumentTypeError("retain count must be a positive number")
    return int(value)


def add_job_args(parser: argparse.ArgumentParser) -> None:
    """Add the config file and job override options."""
    parser.add_argument(
        "-c",
        "--config-file",
        metavar="FILE",
        required=True,
        help="Configuration file; relative names are searched in "
        "/usr/local/etc/snail and /etc/snail",
    )
    parser.add_argument(
        "-j",
        "--job-identifier",
        metavar="ID",
        help="Job identifier, used for backup, log folder and lock file names",
    )
    parser.add_argument(
        "-a",
        "--auto-clean",
        metavar="true|false",
        type=parse_bool,
        help="Enable or disable cleaning up failed backups, old backups and logs",
    )
    parser.add_argument(
        "-r",
        "--retain-count",
        metavar="N",
        type=parse_positive_int,
        help="Number of backups and logs to retain while cleaning up",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def load_job_config(args: argparse.Namespace) -> JobConfig:
    """Find, load and override the job configuration named by ``args``.

    Raises:
        ConfigError: If the configuration cannot be used
    """
    config_path = find_config_file(args.config_file)
    logger.info("Loading configuration from: %s", config_path)
    config, _ = load_config(config_path)
    config = apply_overrides(
        config,
        identifier=getattr(args, "job_identifier", None),
        auto_clean=getattr(args, "auto_clean", None),
        retain_count=getattr(args, "retain_count", None),
    )
    for warning in collect_warnings(config):
        logger.warning("Config: %s", warning)
    return config
