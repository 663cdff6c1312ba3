# pyright: standard

"""snail-backup: snail_backup/__util__.py
Common utility code shared among modules.
"""

import logging
import os
import re
import subprocess
from datetime import datetime
from pathlib import Path

from . import TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)

TIMESTAMP_PATTERN = re.compile(r"^[0-9]{8}_[0-9]{6}$")
LOG_NAME_PATTERN = re.compile(r"^([0-9]{8}_[0-9]{6})\.log$")


class AbortError(Exception):
    """Exception where the current run should be aborted."""

    pass


class PreconditionError(AbortError):
    """A run precondition does not hold (configuration, target state, space)."""

    pass


class SnapshotError(AbortError):
    """Creating or updating snapshot, sentinel or log state on disk failed."""

    pass


class TransferError(AbortError):
    """The transfer subprocess exited with a nonzero status."""

    def __init__(self, returncode, message=None) -> None:
        self.returncode = returncode
        super().__init__(message or f"transfer exited with status {returncode}")


class MountError(AbortError):
    """Mounting or unmounting the backup device failed."""

    pass


def is_valid_timestamp(name: str) -> bool:
    """Return True if ``name`` is a YYYYMMDD_HHMMSS string naming a real time.

    The regex check rejects anything strptime would be lenient about
    (missing zero padding, extra characters); the round trip rejects
    calendar-invalid values like 20250230_000000.
    """
    if not TIMESTAMP_PATTERN.match(name):
        return False
    try:
        parsed = datetime.strptime(name, TIMESTAMP_FORMAT)
    except ValueError:
        return False
    return parsed.strftime(TIMESTAMP_FORMAT) == name


def str_to_date(name: str) -> datetime:
    """Parse a validated timestamp name into a datetime."""
    if not is_valid_timestamp(name):
        raise ValueError(f"not a valid timestamp: {name!r}")
    return datetime.strptime(name, TIMESTAMP_FORMAT)


def date_to_str(when=None) -> str:
    """Format ``when`` (default now) as a timestamp name."""
    return (when or datetime.now()).strftime(TIMESTAMP_FORMAT)


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"{f'--[ {caption} ]':-<50}"


def dir_size(path: Path) -> int:
    """Return the on-disk byte size of ``path``, counting hard links once."""
    seen = set()
    total = 0
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            try:
                st = os.lstat(os.path.join(root, name))
            except OSError:
                continue
            key = (st.st_dev, st.st_ino)
            if key in seen:
                continue
            seen.add(key)
            total += st.st_blocks * 512
    return total


def human_size(num_bytes) -> str:
    """Format a byte count in binary units."""
    if num_bytes < 1024:
        return f"{int(num_bytes)}B"
    size = float(num_bytes)
    for unit in ("KiB", "MiB", "GiB"):
        size /= 1024
        if size < 1024:
            return f"{size:.1f}{unit}"
    return f"{size / 1024:.1f}TiB"


def exec_subprocess(command, method="run", **kwargs):
    """Execute ``command`` with the given subprocess ``method``.

    Any exception raised while starting the process is logged and
    converted to an AbortError.
    """
    logger.debug("Executing: %s", command)
    func = getattr(subprocess, method)
    try:
        return func(command, **kwargs)
    except OSError as e:
        logger.error("Error on command %s: %s", command, e)
        raise AbortError(f"cannot execute {command[0]}: {e}") from e
