# pyright: standard

"""snail-backup: snail_backup/mount.py
Mount the backup device for the duration of a run.
"""

import logging
import os
from pathlib import Path

from .__util__ import MountError, exec_subprocess
from .config import MountConfig

logger = logging.getLogger(__name__)


def _unescape_mount_field(value: str) -> str:
    # /proc/self/mounts escapes space, tab, newline and backslash as octal
    return (
        value.replace("\\040", " ")
        .replace("\\011", "\t")
        .replace("\\012", "\n")
        .replace("\\134", "\\")
    )


def is_mounted(point: Path | str, device: str | None = None) -> bool:
    """Return True if something (or ``device``, if given) is mounted on ``point``."""
    point = os.path.realpath(point)
    mounts = Path("/proc/self/mounts")
    if mounts.exists():
        for line in mounts.read_text(encoding="utf-8", errors="replace").splitlines():
            fields = line.split()
            if len(fields) < 2:
                continue
            if _unescape_mount_field(fields[1]) != point:
                continue
            if device is None or _unescape_mount_field(fields[0]) == device:
                return True
        return False

    # No procfs (BSD): parse "device on point (...)" lines from mount(8)
    result = exec_subprocess(["mount"], capture_output=True, text=True, check=False)
    for line in result.stdout.splitlines():
        dev, sep, rest = line.partition(" on ")
        if not sep:
            continue
        mounted_on = rest.rsplit(" (", 1)[0].split(" type ", 1)[0]
        if mounted_on == point and (device is None or dev == device):
            return True
    return False


class MountManager:
    """Mount and unmount the configured device.

    Only a mount performed by this instance is undone by unmount(), so a
    device that was already mounted before the run stays mounted.
    """

    def __init__(self, config: MountConfig) -> None:
        self.config = config
        self.mounted_by_us = False

    def mount(self) -> None:
        if not self.config.enabled:
            logger.info("Automount is disabled, skip mounting")
            return

        point = Path(self.config.point)
        if not point.is_dir():
            logger.info("Mount point %s does not exist, creating...", point)
            try:
                point.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise MountError(f"Failed to create mount point {point}: {e}") from e

        if is_mounted(point, self.config.device):
            logger.info("Device %s is already mounted on %s", self.config.device, point)
            return

        cmd = ["mount"]
        if self.config.fs_type:
            cmd += ["-t", self.config.fs_type]
        cmd += [self.config.device, str(point)]
        logger.info("Executing mount command: %s", cmd)

        result = exec_subprocess(cmd, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            raise MountError(
                f"Failed to mount {self.config.device} to {point}: {result.stderr.strip()}"
            )
        self.mounted_by_us = True
        logger.info("Successfully mounted %s to %s", self.config.device, point)

    def unmount(self) -> None:
        if not self.config.enabled:
            logger.info("Automount is disabled, skip unmounting")
            return
        if not self.mounted_by_us:
            logger.info("Mount point %s was not mounted by this run, skip unmounting", self.config.point)
            return
        if not is_mounted(self.config.point):
            logger.info("Mount point %s is not mounted, skip unmounting", self.config.point)
            self.mounted_by_us = False
            return

        cmd = ["umount", str(self.config.point)]
        logger.info("Executing unmount command: %s", cmd)
        result = exec_subprocess(cmd, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            raise MountError(f"Failed to unmount {self.config.point}: {result.stderr.strip()}")
        self.mounted_by_us = False
        logger.info("Successfully unmounted %s", self.config.point)
