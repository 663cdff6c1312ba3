"""Snapshot discovery and incremental chain resolution."""

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .. import SENTINEL_NAME
from ..__util__ import is_valid_timestamp, str_to_date

logger = logging.getLogger(__name__)

# Renamed snapshots awaiting deletion: ".<name>.deleting"
DISCARD_SUFFIX = ".deleting"


class SnapshotState(Enum):
    """On-disk state of a snapshot directory."""

    IN_PROGRESS = "in-progress"  # sentinel present
    COMPLETE = "complete"
    MALFORMED = "malformed"  # name is not a valid timestamp


@dataclass(frozen=True)
class Snapshot:
    """A timestamp-named directory below a job folder.

    Sorting by name is chronological for valid names.
    """

    name: str
    path: Path
    state: SnapshotState

    @property
    def is_complete(self) -> bool:
        return self.state is SnapshotState.COMPLETE

    @property
    def is_in_progress(self) -> bool:
        return self.state is SnapshotState.IN_PROGRESS

    @property
    def created_at(self):
        return str_to_date(self.name) if self.state is not SnapshotState.MALFORMED else None

    def __str__(self) -> str:
        return self.name


def classify(path: Path) -> SnapshotState:
    """Classify a snapshot directory by name and sentinel."""
    if not is_valid_timestamp(path.name):
        return SnapshotState.MALFORMED
    if (path / SENTINEL_NAME).exists():
        return SnapshotState.IN_PROGRESS
    return SnapshotState.COMPLETE


def scan_snapshots(job_folder: Path) -> list[Snapshot]:
    """Return every immediate subdirectory of ``job_folder``, classified.

    Directories being discarded are left out. The result is a
    point-in-time view; directories may disappear afterwards if something
    else deletes them.
    """
    job_folder = Path(job_folder)
    if not job_folder.is_dir():
        logger.debug("Job folder %s does not exist yet", job_folder)
        return []

    snapshots = []
    for item in job_folder.iterdir():
        if not item.is_dir() or item.is_symlink() or is_discarded(item):
            continue
        snapshots.append(Snapshot(item.name, item, classify(item)))
    snapshots.sort(key=lambda s: s.name)
    return snapshots


def complete_snapshots(job_folder: Path) -> list[Snapshot]:
    return [s for s in scan_snapshots(job_folder) if s.is_complete]


def in_progress_snapshots(job_folder: Path) -> list[Snapshot]:
    return [s for s in scan_snapshots(job_folder) if s.is_in_progress]


def resolve_link_source(job_folder: Path) -> Optional[Snapshot]:
    """Select the newest complete snapshot as the incremental link source.

    Returns:
        The snapshot with the lexicographically greatest valid name that
        has no sentinel, or None when a full backup is needed.
    """
    complete = complete_snapshots(job_folder)
    if not complete:
        logger.info("No complete backup found in %s", job_folder)
        return None

    logger.info(
        "Found successful history backups: %s", ", ".join(s.name for s in complete)
    )
    return max(complete, key=lambda s: s.name)


def is_discarded(path: Path) -> bool:
    name = Path(path).name
    return name.startswith(".") and name.endswith(DISCARD_SUFFIX)


def discarded_snapshots(job_folder: Path) -> list[Path]:
    """Return directories left by an interrupted or failed discard_snapshot()."""
    job_folder = Path(job_folder)
    if not job_folder.is_dir():
        return []
    return sorted(
        item
        for item in job_folder.iterdir()
        if is_discarded(item) and item.is_dir() and not item.is_symlink()
    )


def discard_snapshot(path: Path) -> None:
    """Delete a snapshot directory without it ever passing for complete.

    The directory is renamed to ``.<name>.deleting`` first. That name fails
    timestamp validation, so if deletion is interrupted or fails halfway
    (possibly after the sentinel is gone) the remains are never chosen as
    link source or counted by rotation. Leftovers are removed by
    purge_discarded().

    Raises:
        OSError: If the rename or the deletion fails
    """
    path = Path(path)
    target = path.with_name(f".{path.name}{DISCARD_SUFFIX}")
    if target.exists():
        shutil.rmtree(target)
    path.rename(target)
    shutil.rmtree(target)


def purge_discarded(job_folder: Path) -> tuple[list[str], int]:
    """Remove leftovers of earlier discards.

    Returns:
        Names removed and the number of directories that could not be removed
    """
    removed, errors = [], 0
    for path in discarded_snapshots(job_folder):
        logger.info("Removing remains of deleted backup %s", path)
        try:
            shutil.rmtree(path)
            removed.append(path.name)
        except OSError as e:
            logger.warning("Failed to remove %s: %s", path, e)
            errors += 1
    return removed, errors
