"""Tests for crash recovery and the run guard."""

import os
import signal
from unittest.mock import MagicMock

import pytest

from snail_backup.__util__ import MountError
from snail_backup.core.recovery import (
    HANDLED_SIGNALS,
    JobTerminated,
    RunGuard,
    abort_in_progress,
    recover_orphaned_snapshots,
)
from snail_backup.lock import JobLock


class TestAbortInProgress:
    def test_deletes_with_sentinel(self, tmp_path, make_snapshot):
        path = make_snapshot(tmp_path, "20250101_000000", in_progress=True)
        assert abort_in_progress(path) is True
        assert not path.exists()

    def test_keeps_complete(self, tmp_path, make_snapshot):
        path = make_snapshot(tmp_path, "20250101_000000")
        assert abort_in_progress(path) is False
        assert path.exists()

    def test_nothing_to_do(self, tmp_path):
        assert abort_in_progress(None) is False
        assert abort_in_progress(tmp_path / "missing") is False


class TestRecoverOrphanedSnapshots:
    def test_removes_only_in_progress(self, tmp_path, make_snapshot):
        make_snapshot(tmp_path, "20250101_000000")
        make_snapshot(tmp_path, "20250102_000000", in_progress=True)
        make_snapshot(tmp_path, "20250103_000000", in_progress=True)

        removed = recover_orphaned_snapshots(tmp_path)

        assert removed == ["20250102_000000", "20250103_000000"]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["20250101_000000"]

    def test_missing_job_folder(self, tmp_path):
        assert recover_orphaned_snapshots(tmp_path / "missing") == []

    def test_removes_remains_of_interrupted_deletion(self, tmp_path, make_snapshot):
        make_snapshot(tmp_path, "20250101_000000")
        make_snapshot(tmp_path, ".20250102_000000.deleting")

        assert recover_orphaned_snapshots(tmp_path) == []
        assert sorted(p.name for p in tmp_path.iterdir()) == ["20250101_000000"]


class TestRunGuard:
    """Tests for RunGuard context manager."""

    def test_clean_exit(self, tmp_path, make_snapshot):
        path = make_snapshot(tmp_path, "20250101_000000")
        with RunGuard() as guard:
            guard.snapshot_path = path
        assert guard.exit_code == 0
        assert path.exists()

    def test_exception_removes_in_progress_snapshot(self, tmp_path, make_snapshot):
        path = make_snapshot(tmp_path / "job", "20250101_000000", in_progress=True)
        lock = JobLock("daily", tmp_path / "run")

        with pytest.raises(RuntimeError):
            with RunGuard() as guard:
                guard.lock = lock.acquire()
                guard.snapshot_path = path
                raise RuntimeError("boom")

        assert guard.exit_code == 1
        assert not path.exists()
        assert not lock.held
        assert not lock.record_path.exists()

    def test_signal_becomes_exception(self, tmp_path, make_snapshot):
        path = make_snapshot(tmp_path, "20250101_000000", in_progress=True)

        with pytest.raises(JobTerminated) as excinfo:
            with RunGuard() as guard:
                guard.snapshot_path = path
                os.kill(os.getpid(), signal.SIGTERM)

        assert excinfo.value.signum == signal.SIGTERM
        assert "SIGTERM" in str(excinfo.value)
        assert not path.exists()
        assert guard.exit_code == 1

    def test_handlers_restored(self):
        before = {sig: signal.getsignal(sig) for sig in HANDLED_SIGNALS}
        with RunGuard() as guard:
            for sig in HANDLED_SIGNALS:
                assert signal.getsignal(sig) == guard._handle_signal
        assert {sig: signal.getsignal(sig) for sig in HANDLED_SIGNALS} == before

    def test_cleanup_order(self, tmp_path, make_snapshot):
        """Snapshot first, then lock, then unmount."""
        path = make_snapshot(tmp_path, "20250101_000000", in_progress=True)
        calls = []
        guard = RunGuard()
        guard.snapshot_path = path
        guard.lock = MagicMock()
        guard.lock.release.side_effect = lambda: calls.append(("release", path.exists()))
        guard.mount = MagicMock()
        guard.mount.unmount.side_effect = lambda: calls.append(("unmount", path.exists()))

        with guard:
            pass

        assert calls == [("release", False), ("unmount", False)]

    def test_unmount_failure_sets_exit_code(self):
        guard = RunGuard()
        guard.mount = MagicMock()
        guard.mount.unmount.side_effect = MountError("busy")
        with guard:
            pass
        assert guard.exit_code == 1

    def test_lock_release_failure_does_not_stop_unmount(self):
        guard = RunGuard()
        guard.lock = MagicMock()
        guard.lock.release.side_effect = OSError("gone")
        guard.mount = MagicMock()
        with guard:
            pass
        guard.mount.unmount.assert_called_once()

    def test_signal_during_cleanup_ignored(self):
        guard = RunGuard()
        guard.mount = MagicMock()
        guard.mount.unmount.side_effect = lambda: guard._handle_signal(signal.SIGINT, None)
        with guard:
            pass
        assert guard.exit_code == 0
