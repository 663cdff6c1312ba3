"""Configuration schema definitions using dataclasses.

Every value is frozen: a JobConfig is built once at startup and passed
explicitly to each component, so nothing can change it mid-run.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_LOG_ROOT = "/var/log/snail_backup"
DEFAULT_RUN_ROOT = "/var/run/snail_backup"


@dataclass(frozen=True)
class RetentionConfig:
    """Retention policy configuration.

    Attributes:
        auto_clean: Purge failed snapshots and rotate old snapshots and logs
        retain_count: Number of complete snapshots and log files to keep
            (0 disables rotation)
    """

    auto_clean: bool = False
    retain_count: int = 0

    @property
    def rotation_enabled(self) -> bool:
        return self.auto_clean and self.retain_count > 0


@dataclass(frozen=True)
class MountConfig:
    """Backup device automount configuration.

    Attributes:
        enabled: Mount ``device`` on ``point`` before the run
        device: Block device or remote filesystem spec
        point: Mount point directory
        fs_type: Optional filesystem type passed as ``mount -t``
    """

    enabled: bool = False
    device: Optional[str] = None
    point: Optional[str] = None
    fs_type: Optional[str] = None


@dataclass(frozen=True)
class SshConfig:
    """Remote shell transport for the transfer.

    Attributes:
        enabled: Pass an ssh command to the transfer as its remote shell
        port: Optional ssh port
        key_file: Optional identity file
    """

    enabled: bool = False
    port: Optional[int] = None
    key_file: Optional[str] = None

    def command(self) -> list[str]:
        """Return the ssh command as an argument list."""
        cmd = ["ssh"]
        if self.port is not None:
            cmd += ["-p", str(self.port)]
        if self.key_file:
            cmd += ["-i", self.key_file]
        return cmd


@dataclass(frozen=True)
class PathsConfig:
    """Well-known runtime locations.

    Attributes:
        log_root: Per-job log folders are created below this directory
        run_root: Per-job lock files are created below this directory
    """

    log_root: str = DEFAULT_LOG_ROOT
    run_root: str = DEFAULT_RUN_ROOT


@dataclass(frozen=True)
class JobConfig:
    """Root configuration object for one backup job.

    Attributes:
        identifier: Job identifier (letters, digits and underscore)
        source: Source location handed to the transfer as is
        target_root: Directory holding one folder per job
        exclude: Transfer exclusion patterns
        min_free_space_kb: Required free space on target_root (0 disables)
        retention: Retention policy
        mount: Automount settings
        ssh: Remote shell settings
        paths: Log and lock locations
    """

    identifier: str
    source: str
    target_root: str
    exclude: tuple[str, ...] = ()
    min_free_space_kb: int = 0
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    mount: MountConfig = field(default_factory=MountConfig)
    ssh: SshConfig = field(default_factory=SshConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    @property
    def job_folder(self) -> Path:
        return Path(self.target_root) / self.identifier

    @property
    def log_folder(self) -> Path:
        return Path(self.paths.log_root) / self.identifier

    @property
    def run_root(self) -> Path:
        return Path(self.paths.run_root)
