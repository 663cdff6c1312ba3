"""Crash recovery bound to every exit path of a run.

RunGuard replaces a global exit trap: it is a context manager wrapping the
whole run. Termination signals are turned into a JobTerminated exception
so they unwind through the same path as any other failure. On exit, in
this order, it

1. deletes the run's snapshot directory if it still holds the sentinel,
2. releases the job lock if held,
3. unmounts the backup device if this run mounted it,
4. logs the final exit code.

Each step does nothing when its state was never set up, and a failing
step does not prevent the later ones.
"""

import logging
import signal
import threading
from pathlib import Path
from typing import Optional

from .. import SENTINEL_NAME
from ..__util__ import AbortError
from ..lock import JobLock
from ..mount import MountManager
from .chain import discard_snapshot, in_progress_snapshots, purge_discarded

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class JobTerminated(AbortError):
    """The run received a termination signal."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"terminated by {signal.Signals(signum).name}")


def abort_in_progress(snapshot_path: Optional[Path]) -> bool:
    """Delete ``snapshot_path`` if it exists and still holds the sentinel.

    Returns:
        True if a directory was deleted
    """
    if snapshot_path is None:
        return False
    snapshot_path = Path(snapshot_path)
    if not snapshot_path.is_dir() or not (snapshot_path / SENTINEL_NAME).exists():
        return False
    logger.info("Cleaning uncompleted backup %s ...", snapshot_path)
    discard_snapshot(snapshot_path)
    return True


def recover_orphaned_snapshots(job_folder: Path) -> list[str]:
    """Delete snapshots left in progress by a run that no longer exists.

    Must only be called while holding the job lock: with the lock held no
    other run of this job can be writing, so every sentinel is stale.
    Remains of interrupted deletions are removed as well.

    Returns:
        Names of the deleted snapshots
    """
    removed = []
    for snapshot in in_progress_snapshots(job_folder):
        logger.warning("Removing backup %s left unfinished by an earlier run", snapshot.path)
        try:
            discard_snapshot(snapshot.path)
            removed.append(snapshot.name)
        except OSError as e:
            logger.warning("Failed to remove unfinished backup %s: %s", snapshot.path, e)
    purge_discarded(job_folder)
    return removed


class RunGuard:
    """Guaranteed-release block around a backup run."""

    def __init__(self) -> None:
        self.snapshot_path: Optional[Path] = None
        self.lock: Optional[JobLock] = None
        self.mount: Optional[MountManager] = None
        self.exit_code: Optional[int] = None
        self._previous_handlers: dict = {}
        self._exiting = False

    def _handle_signal(self, signum, frame) -> None:
        if self._exiting:
            logger.warning("Received %s during cleanup, ignoring", signal.Signals(signum).name)
            return
        raise JobTerminated(signum)

    def _install_handlers(self) -> None:
        # signal.signal only works in the main thread
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in HANDLED_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _restore_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    def __enter__(self) -> "RunGuard":
        self._install_handlers()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self._exiting = True
        self.exit_code = 0 if exc_type is None else 1
        try:
            if exc_type is not None:
                logger.info("Program terminated unexpectedly, code: %d", self.exit_code)
            self.cleanup()
        finally:
            self._restore_handlers()
        return False

    def cleanup(self) -> None:
        try:
            abort_in_progress(self.snapshot_path)
        except OSError as e:
            logger.error("Failed to clean uncompleted backup %s: %s", self.snapshot_path, e)

        if self.lock is not None:
            try:
                self.lock.release()
            except Exception as e:
                logger.error("Failed to release %r: %s", self.lock, e)

        if self.mount is not None:
            try:
                self.mount.unmount()
            except Exception as e:
                logger.error("Failed to unmount backup device: %s", e)
                self.exit_code = 1

        logger.info("Program exit with code %d", self.exit_code)
