# pyright: standard

"""snail-backup: snail_backup/__logger__.py
A common logger for console output and the per-run log file.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Initialize basic console and handler
cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)

# Same line layout rsync's own --log-file entries sit next to
FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def create_logger(level="INFO", log_file: Optional[Path] = None) -> None:
    """Helper function to setup console logging and an optional log file."""
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = Console(stderr=True)
    rich_handler = RichHandler(console=cons, show_path=False)

    logging.basicConfig(
        format="%(message)s",
        datefmt="%H:%M:%S",
        level=level,
        handlers=[rich_handler],
        force=True,
    )

    if log_file is not None:
        attach_log_file(log_file)


def attach_log_file(log_file: Path) -> logging.Handler:
    """Also write every record that reaches the root logger to ``log_file``."""
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT, FILE_DATEFMT))
    logging.getLogger().addHandler(handler)
    return handler


def detach_log_file(handler: logging.Handler) -> None:
    logging.getLogger().removeHandler(handler)
    handler.close()
