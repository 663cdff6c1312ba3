"""Tests for backup device mounting."""

import os
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from snail_backup import mount
from snail_backup.__util__ import MountError
from snail_backup.config import MountConfig
from snail_backup.mount import MountManager, is_mounted


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr=stderr)


class TestIsMounted:
    def test_proc_mounts(self, tmp_path, monkeypatch):
        point = tmp_path / "my backup"
        point.mkdir()
        escaped = os.path.realpath(point).replace(" ", "\\040")
        proc = tmp_path / "mounts"
        proc.write_text(
            "proc /proc proc rw 0 0\n"
            f"/dev/sdb1 {escaped} ext4 rw,relatime 0 0\n"
        )
        monkeypatch.setattr(mount, "Path", lambda p: proc if p == "/proc/self/mounts" else Path(p))

        assert is_mounted(point)
        assert is_mounted(point, "/dev/sdb1")
        assert not is_mounted(point, "/dev/sdc1")
        assert not is_mounted(tmp_path)

    def test_mount_output_fallback(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            mount, "Path", lambda p: tmp_path / "none" if p == "/proc/self/mounts" else Path(p)
        )
        output = f"/dev/ada0p2 on {os.path.realpath(tmp_path)} (ufs, local, soft-updates)\n"
        with patch.object(mount, "exec_subprocess", return_value=completed(stdout=output)):
            assert is_mounted(tmp_path, "/dev/ada0p2")
            assert not is_mounted(tmp_path, "/dev/ada1p2")


class TestMountManager:
    """Tests for MountManager class."""

    @pytest.fixture
    def config(self, tmp_path):
        return MountConfig(
            enabled=True, device="/dev/sdb1", point=str(tmp_path / "mnt"), fs_type="ext4"
        )

    def test_disabled_does_nothing(self):
        manager = MountManager(MountConfig())
        with patch.object(mount, "exec_subprocess") as mock_exec:
            manager.mount()
            manager.unmount()
        mock_exec.assert_not_called()
        assert manager.mounted_by_us is False

    def test_mount_and_unmount(self, config):
        manager = MountManager(config)
        with patch.object(mount, "is_mounted", side_effect=[False, True]), patch.object(
            mount, "exec_subprocess", return_value=completed()
        ) as mock_exec:
            manager.mount()
            assert manager.mounted_by_us is True
            manager.unmount()

        assert Path(config.point).is_dir()
        commands = [c.args[0] for c in mock_exec.call_args_list]
        assert commands == [
            ["mount", "-t", "ext4", "/dev/sdb1", config.point],
            ["umount", config.point],
        ]
        assert manager.mounted_by_us is False

    def test_already_mounted_left_alone(self, config):
        """A device mounted before the run is not unmounted afterwards."""
        manager = MountManager(config)
        with patch.object(mount, "is_mounted", return_value=True), patch.object(
            mount, "exec_subprocess"
        ) as mock_exec:
            manager.mount()
            manager.unmount()
        mock_exec.assert_not_called()
        assert manager.mounted_by_us is False

    def test_mount_failure(self, config):
        manager = MountManager(config)
        with patch.object(mount, "is_mounted", return_value=False), patch.object(
            mount, "exec_subprocess", return_value=completed(32, stderr="wrong fs type\n")
        ):
            with pytest.raises(MountError, match="wrong fs type"):
                manager.mount()
        assert manager.mounted_by_us is False

    def test_unmount_failure(self, config):
        manager = MountManager(config)
        manager.mounted_by_us = True
        with patch.object(mount, "is_mounted", return_value=True), patch.object(
            mount, "exec_subprocess", return_value=completed(32, stderr="target is busy\n")
        ):
            with pytest.raises(MountError, match="busy"):
                manager.unmount()

    def test_no_fs_type(self, config):
        manager = MountManager(MountConfig(enabled=True, device="nas:/backup", point=config.point))
        with patch.object(mount, "is_mounted", return_value=False), patch.object(
            mount, "exec_subprocess", return_value=completed()
        ) as mock_exec:
            manager.mount()
        assert mock_exec.call_args.args[0] == ["mount", "nas:/backup", config.point]
