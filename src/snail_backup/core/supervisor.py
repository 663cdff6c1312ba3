"""Job supervisor: drives one snapshot through its lifecycle.

    CREATED -> IN_PROGRESS -> SUCCESS
                           -> FAILED

The sentinel is written before the transfer starts and removed only after
it exits successfully, so a snapshot directory that still holds it after
any kind of termination is known to be incomplete.
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Optional

from .. import SENTINEL_NAME
from ..__util__ import (
    PreconditionError,
    SnapshotError,
    TransferError,
    dir_size,
    human_size,
)
from ..config import JobConfig
from .chain import Snapshot, discard_snapshot, resolve_link_source
from .transfer import TransferFunc, build_rsync_command, run_transfer

logger = logging.getLogger(__name__)


class RunState(Enum):
    """Lifecycle state of the snapshot produced by a run."""

    PENDING = "pending"
    CREATED = "created"
    IN_PROGRESS = "in-progress"
    SUCCESS = "success"
    FAILED = "failed"


class JobSupervisor:
    """Create, fill and finalize one snapshot for a job."""

    def __init__(
        self,
        config: JobConfig,
        timestamp: str,
        log_file: Path,
        transfer: TransferFunc = run_transfer,
    ) -> None:
        self.config = config
        self.timestamp = timestamp
        self.log_file = Path(log_file)
        self.transfer = transfer
        self.state = RunState.PENDING
        self.link_source: Optional[Snapshot] = None
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

    @property
    def job_folder(self) -> Path:
        return self.config.job_folder

    @property
    def snapshot_path(self) -> Path:
        return self.job_folder / self.timestamp

    @property
    def sentinel_path(self) -> Path:
        return self.snapshot_path / SENTINEL_NAME

    def prepare(self) -> Path:
        """Resolve the link source and create an empty snapshot directory."""
        try:
            self.job_folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SnapshotError(f"Failed to create target job folder {self.job_folder}: {e}") from e

        try:
            self.link_source = resolve_link_source(self.job_folder)
        except OSError as e:
            raise SnapshotError(f"Failed to scan backups in {self.job_folder}: {e}") from e

        try:
            self.snapshot_path.mkdir(exist_ok=True)
            not_empty = any(self.snapshot_path.iterdir())
        except OSError as e:
            raise SnapshotError(f"Failed to create target folder {self.snapshot_path}: {e}") from e

        if not_empty:
            raise PreconditionError(f"Target directory is not empty: {self.snapshot_path}")

        self.state = RunState.CREATED
        logger.debug("Created snapshot directory %s", self.snapshot_path)
        return self.snapshot_path

    def mark_in_progress(self) -> None:
        """Write the sentinel; must happen before the transfer starts."""
        if self.state is not RunState.CREATED:
            raise SnapshotError(f"Cannot start transfer from state {self.state.value}")
        try:
            self.sentinel_path.touch(exist_ok=False)
        except OSError as e:
            raise SnapshotError(f"Failed to create processing flag {self.sentinel_path}: {e}") from e
        self.state = RunState.IN_PROGRESS

    def build_command(self) -> list[str]:
        return build_rsync_command(
            source=self.config.source,
            destination=self.snapshot_path,
            log_file=self.log_file,
            link_dest=self.link_source.path if self.link_source else None,
            exclude=self.config.exclude,
            ssh_command=self.config.ssh.command() if self.config.ssh.enabled else None,
        )

    def execute(self) -> None:
        """Run the transfer and record its outcome.

        Raises:
            TransferError: The transfer failed; the snapshot was removed
            SnapshotError: The sentinel could not be removed after success
        """
        self.mark_in_progress()
        command = self.build_command()

        if self.link_source is not None:
            logger.info("Enabled incremental backup via --link-dest: '%s'", self.link_source.path)
        else:
            logger.info("No previous backup, performing a full backup")

        self.started_at = time.monotonic()
        logger.info("Starting rsync backup...")
        returncode = self.transfer(command)
        self.finished_at = time.monotonic()

        if returncode != 0:
            logger.error("Rsync backup failed, exit code: %d", returncode)
            self.rollback()
            raise TransferError(returncode)

        logger.info("Rsync backup completed successfully")
        try:
            self.sentinel_path.unlink()
        except OSError as e:
            raise SnapshotError(f"Failed to remove processing flag {self.sentinel_path}: {e}") from e
        self.state = RunState.SUCCESS

    def rollback(self) -> None:
        """Delete the whole snapshot directory after a failed transfer.

        Removing only the sentinel would leave a partial tree that looks
        complete to the chain resolver.
        """
        self.state = RunState.FAILED
        if not self.snapshot_path.exists():
            return
        logger.info("Removing incomplete backup %s", self.snapshot_path)
        try:
            discard_snapshot(self.snapshot_path)
        except OSError as e:
            # Either still named with its sentinel or already renamed;
            # recovery at the next run removes both
            logger.error("Failed to remove incomplete backup %s: %s", self.snapshot_path, e)

    def statistics(self) -> dict:
        """Log and return size and duration of a successful snapshot."""
        duration = 0.0
        if self.started_at is not None and self.finished_at is not None:
            duration = self.finished_at - self.started_at
        size = dir_size(self.snapshot_path) if self.snapshot_path.is_dir() else 0
        logger.info(
            "Backup completed: Size=%s, Duration=%ds", human_size(size), round(duration)
        )
        return {"size_bytes": size, "duration_seconds": duration}
