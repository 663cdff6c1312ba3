"""Run one backup of a job from lock acquisition to cleanup."""

import logging
import os
import resource
import time
from pathlib import Path
from typing import Optional

from .. import __util__
from ..__logger__ import attach_log_file, detach_log_file
from ..config import JobConfig
from ..lock import JobLock
from ..mount import MountManager
from ..retention import RetentionResult, apply_retention
from .recovery import RunGuard, recover_orphaned_snapshots
from .space import check_free_space
from .supervisor import JobSupervisor
from .transfer import TransferFunc, run_transfer

logger = logging.getLogger(__name__)

OPEN_FILES_LIMIT = 1024
NICE_INCREMENT = 10


def init_log(config: JobConfig, timestamp: str) -> Path:
    """Create ``<log_root>/<job>/<timestamp>.log`` with owner-only access."""
    log_folder = config.log_folder
    try:
        log_folder.mkdir(parents=True, exist_ok=True)
        log_folder.chmod(0o700)
    except OSError as e:
        raise __util__.SnapshotError(f"Failed to create log folder {log_folder}: {e}") from e

    log_file = log_folder / f"{timestamp}.log"
    try:
        log_file.touch()
        log_file.chmod(0o600)
    except OSError as e:
        raise __util__.SnapshotError(f"Failed to create log file {log_file}: {e}") from e
    return log_file


def set_resource_limits() -> None:
    """Cap open files and lower scheduling priority for the transfer."""
    try:
        _, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
        if hard == resource.RLIM_INFINITY or hard >= OPEN_FILES_LIMIT:
            resource.setrlimit(resource.RLIMIT_NOFILE, (OPEN_FILES_LIMIT, hard))
    except (ValueError, OSError) as e:
        logger.warning("Failed to set open file limit: %s", e)
    try:
        os.nice(NICE_INCREMENT)
    except OSError as e:
        logger.warning("Failed to lower process priority: %s", e)


class BackupRun:
    """One run of a job; run() returns the process exit code."""

    def __init__(
        self,
        config: JobConfig,
        transfer: TransferFunc = run_transfer,
        timestamp: Optional[str] = None,
        limit_resources: bool = True,
    ) -> None:
        self.config = config
        self.transfer = transfer
        self.timestamp = timestamp or __util__.date_to_str()
        self.limit_resources = limit_resources
        self.guard = RunGuard()
        self.supervisor: Optional[JobSupervisor] = None
        self.retention: Optional[RetentionResult] = None
        self.recovered: list[str] = []

    def run(self) -> int:
        try:
            log_file = init_log(self.config, self.timestamp)
        except __util__.AbortError as e:
            logger.error("%s", e)
            return 1

        try:
            handler = attach_log_file(log_file)
        except OSError as e:
            logger.error("Failed to open log file %s: %s", log_file, e)
            return 1

        try:
            logger.info(__util__.log_heading(f"Job {self.config.identifier} started at {time.ctime()}"))
            try:
                with self.guard:
                    self._run(log_file)
            except __util__.AbortError as e:
                logger.error("%s", e)
                return 1
            except OSError as e:
                logger.error("Backup failed: %s", e)
                return 1
            return self.guard.exit_code or 0
        finally:
            detach_log_file(handler)

    def _run(self, log_file: Path) -> None:
        config = self.config

        self.guard.lock = JobLock(config.identifier, config.run_root)
        self.guard.lock.acquire()

        self.guard.mount = MountManager(config.mount)
        self.guard.mount.mount()

        self.recovered = recover_orphaned_snapshots(config.job_folder)
        check_free_space(Path(config.target_root), config.min_free_space_kb)

        self.supervisor = JobSupervisor(config, self.timestamp, log_file, self.transfer)
        self.guard.snapshot_path = self.supervisor.snapshot_path
        self.supervisor.prepare()

        if self.limit_resources:
            set_resource_limits()

        try:
            self.supervisor.execute()
        except __util__.TransferError:
            self._cleanup()
            raise

        self.supervisor.statistics()
        self._cleanup()

    def _cleanup(self) -> None:
        logger.info(__util__.log_heading("Cleanup"))
        self.retention = apply_retention(
            self.config.job_folder, self.config.log_folder, self.config.retention
        )


def run_job(config: JobConfig, transfer: TransferFunc = run_transfer, **kwargs) -> int:
    """Run one backup of ``config`` and return the exit code (0 or 1)."""
    return BackupRun(config, transfer=transfer, **kwargs).run()
