"""Per-job execution lock.

Two layers protect a job:

- ``<run_root>/<job>.lock`` is held with an exclusive, non-blocking
  ``flock`` through :mod:`filelock`. The kernel drops it when the holder
  dies, so it alone decides mutual exclusion.
- ``<run_root>/<job>.pid`` is an advisory JSON record naming the holder
  (pid, job, start time). It is only used for diagnostics and for telling
  a stale record from a live one.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout

from .__util__ import AbortError

logger = logging.getLogger(__name__)


class LockError(AbortError):
    """Lock acquisition or management failed."""

    pass


class LockContentionError(LockError):
    """Another live run already holds the job lock."""

    def __init__(self, job_id, holder=None, holder_alive=False) -> None:
        self.job_id = job_id
        self.holder = holder
        self.holder_alive = holder_alive
        if holder is not None:
            detail = f"PID={holder.pid}, started {holder.started_at}"
        else:
            detail = "holder unknown"
        super().__init__(f"Another process of job '{job_id}' is running: {detail}")


@dataclass(frozen=True)
class LockRecord:
    """Information stored in the advisory lock record."""

    pid: int
    job: str
    started_at: str


def is_process_alive(pid: int) -> bool:
    """Return True if a process with ``pid`` exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by somebody else
        return True
    return True


class JobLock:
    """Exclusive execution lock for one job identifier."""

    def __init__(self, job_id: str, run_root: Path | str) -> None:
        self.job_id = job_id
        self.run_root = Path(run_root)
        self.lock_path = self.run_root / f"{job_id}.lock"
        self.record_path = self.run_root / f"{job_id}.pid"
        self._file_lock: Optional[FileLock] = None

    def __repr__(self) -> str:
        return f"JobLock({self.job_id!r}, {str(self.run_root)!r})"

    @property
    def held(self) -> bool:
        return self._file_lock is not None and self._file_lock.is_locked

    def read_record(self) -> Optional[LockRecord]:
        """Return the advisory record, or None if absent or unreadable."""
        try:
            text = self.record_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Cannot read lock record %s: %s", self.record_path, e)
            return None
        try:
            data = json.loads(text)
            return LockRecord(
                pid=int(data["pid"]),
                job=str(data.get("job", self.job_id)),
                started_at=str(data.get("started_at", "")),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring malformed lock record %s", self.record_path)
            return None

    def holder_status(self) -> tuple[Optional[LockRecord], bool]:
        """Return the recorded holder and whether that process is alive."""
        record = self.read_record()
        if record is None:
            return None, False
        return record, is_process_alive(record.pid)

    def is_held_elsewhere(self) -> bool:
        """Return True if another lock object or process holds the kernel lock.

        Tests with a non-blocking acquire that is released right away, so a
        run starting at the same instant may see contention.

        Raises:
            LockError: If the lock file cannot be opened
        """
        if self.held:
            return False
        if not self.lock_path.exists():
            return False
        file_lock = FileLock(str(self.lock_path), mode=0o600)
        try:
            file_lock.acquire(timeout=0)
        except Timeout:
            return True
        except OSError as e:
            raise LockError(f"Failed to open lock file {self.lock_path}: {e}") from e
        file_lock.release(force=True)
        return False

    def _prepare_run_root(self) -> None:
        if self.run_root.is_dir():
            return
        try:
            self.run_root.mkdir(parents=True, exist_ok=True)
            self.run_root.chmod(0o700)
        except OSError as e:
            raise LockError(f"Failed to create lock folder {self.run_root}: {e}") from e

    def acquire(self) -> "JobLock":
        """Take the lock without blocking.

        Raises:
            LockContentionError: If another run holds the kernel lock
            LockError: If the lock files cannot be created
        """
        if self.held:
            return self

        self._prepare_run_root()
        file_lock = FileLock(str(self.lock_path), mode=0o600)
        try:
            file_lock.acquire(timeout=0)
        except Timeout:
            record, alive = self.holder_status()
            raise LockContentionError(self.job_id, record, alive) from None
        except OSError as e:
            raise LockError(f"Failed to open lock file {self.lock_path}: {e}") from e
        self._file_lock = file_lock

        record, alive = self.holder_status()
        if record is not None and record.pid != os.getpid():
            if alive:
                # The kernel lock was free, so this pid is not a live holder
                logger.warning(
                    "Lock record %s names running PID %d but the lock was free, taking over",
                    self.record_path,
                    record.pid,
                )
            else:
                logger.warning(
                    "Found stale PID %d in %s, no running process, ignore it",
                    record.pid,
                    self.record_path,
                )

        try:
            self._write_record()
        except OSError as e:
            file_lock.release()
            self._file_lock = None
            raise LockError(f"Failed to write lock record {self.record_path}: {e}") from e

        logger.info("Acquired lock %s with process id %d", self.lock_path, os.getpid())
        return self

    def _write_record(self) -> None:
        record = LockRecord(
            pid=os.getpid(),
            job=self.job_id,
            started_at=datetime.now().isoformat(timespec="seconds"),
        )
        fd = os.open(self.record_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(asdict(record), f)
        os.chmod(self.record_path, 0o600)

    def release(self) -> None:
        """Release the lock; safe to call any number of times."""
        if self._file_lock is None:
            return

        record = self.read_record()
        if record is None:
            logger.warning("Lock record %s doesn't exist", self.record_path)
        elif record.pid != os.getpid():
            logger.warning(
                "Lock record %s has been modified to PID %d, leaving it in place",
                self.record_path,
                record.pid,
            )
        else:
            try:
                self.record_path.unlink()
                logger.info("Released lock %s", self.lock_path)
            except OSError as e:
                logger.warning("Failed to remove lock record %s: %s", self.record_path, e)

        self._file_lock.release(force=True)
        self._file_lock = None

    def __enter__(self) -> "JobLock":
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
