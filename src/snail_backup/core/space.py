"""Free space check on the backup target."""

import logging
import shutil
from pathlib import Path

from ..__util__ import PreconditionError

logger = logging.getLogger(__name__)


def get_free_space_kb(path: Path) -> int:
    return shutil.disk_usage(path).free // 1024


def check_free_space(target_root: Path, min_free_kb: int) -> None:
    """Require at least ``min_free_kb`` KiB free on ``target_root``.

    A limit of 0 disables the check.

    Raises:
        PreconditionError: If there is not enough space or it cannot be read
    """
    if not min_free_kb:
        logger.info("Minimum free space is zero, skip free space check")
        return

    try:
        free_kb = get_free_space_kb(Path(target_root))
    except OSError as e:
        raise PreconditionError(f"Failed to get free space of '{target_root}': {e}") from e

    if free_kb < min_free_kb:
        raise PreconditionError(
            f"Insufficient free space {free_kb} KB where needs {min_free_kb} KB on {target_root}"
        )
    logger.info(
        "Free space check passed: Available %d KB (Required: %d KB)", free_kb, min_free_kb
    )
