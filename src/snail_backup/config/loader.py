"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import dataclasses
import os
import re
import stat
import tomllib
from pathlib import Path
from typing import Any

from .schema import (
    DEFAULT_LOG_ROOT,
    DEFAULT_RUN_ROOT,
    JobConfig,
    MountConfig,
    PathsConfig,
    RetentionConfig,
    SshConfig,
)


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Folders searched, in priority order, when a relative config name is given
CONFIG_FOLDERS = [
    Path("/usr/local/etc/snail"),
    Path("/etc/snail"),
]

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

# Config and key files may hold credentials
ALLOWED_FILE_MODES = (0o400, 0o600)


def find_config_file(name: str) -> Path:
    """Find configuration file.

    Args:
        name: Absolute path, or a file name looked up in CONFIG_FOLDERS

    Returns:
        Path to config file

    Raises:
        ConfigError: If no such file exists
    """
    path = Path(name)
    if path.is_absolute():
        if path.is_file():
            return path
        raise ConfigError(f"Config file not found: {name}")

    for folder in CONFIG_FOLDERS:
        candidate = folder / path
        if candidate.is_file():
            return candidate

    raise ConfigError(f"Cannot find config file: {name}")


def check_file_permissions(path: Path, what: str = "Config file") -> None:
    """Reject files readable or writable by anyone but the owner."""
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except OSError as e:
        raise ConfigError(f"Cannot stat {what.lower()} {path}: {e}")
    if mode not in ALLOWED_FILE_MODES:
        raise ConfigError(
            f"{what} permissions too open: {path} ({mode:04o}), should be 0600 or 0400"
        )


def validate_identifier(value: Any) -> str:
    if not isinstance(value, str) or not IDENTIFIER_PATTERN.match(value):
        raise ConfigError(
            f"Illegal job identifier: {value!r}, only a-z, A-Z, 0-9 and '_' are allowed"
        )
    return value


def _get_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false")
    return value


def _get_non_negative_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"'{key}' must be a non-negative integer")
    return value


def _get_optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"'{key}' must be a string")
    return value or None


def _parse_retention(data: dict[str, Any]) -> RetentionConfig:
    """Parse retention configuration from dict."""
    return RetentionConfig(
        auto_clean=_get_bool(data, "auto_clean", False),
        retain_count=_get_non_negative_int(data, "retain_count", 0),
    )


def _parse_mount(data: dict[str, Any]) -> MountConfig:
    """Parse automount configuration from dict."""
    mount = MountConfig(
        enabled=_get_bool(data, "enabled", False),
        device=_get_optional_str(data, "device"),
        point=_get_optional_str(data, "point"),
        fs_type=_get_optional_str(data, "fs_type"),
    )
    if mount.enabled and not mount.device:
        raise ConfigError("Mount 'device' cannot be empty while mount is enabled")
    if mount.enabled and not mount.point:
        raise ConfigError("Mount 'point' cannot be empty while mount is enabled")
    return mount


def _parse_ssh(data: dict[str, Any]) -> SshConfig:
    """Parse ssh transport configuration from dict."""
    enabled = _get_bool(data, "enabled", False)
    port = data.get("port")
    key_file = _get_optional_str(data, "key_file")

    if enabled and port is not None:
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            raise ConfigError("ssh 'port' must be an integer between 1 and 65535")

    if enabled and key_file:
        key_path = Path(key_file)
        if not key_path.is_file() or not os.access(key_path, os.R_OK):
            raise ConfigError(f"ssh key file does not exist or is not readable: {key_file}")
        check_file_permissions(key_path, what="ssh key file")

    return SshConfig(enabled=enabled, port=port if enabled else None, key_file=key_file)


def _parse_paths(data: dict[str, Any]) -> PathsConfig:
    """Parse runtime path configuration from dict."""
    return PathsConfig(
        log_root=_get_optional_str(data, "log_root") or DEFAULT_LOG_ROOT,
        run_root=_get_optional_str(data, "run_root") or DEFAULT_RUN_ROOT,
    )


def _parse_job(data: dict[str, Any], **sections) -> JobConfig:
    """Parse the [job] table from dict."""
    source = _get_optional_str(data, "source")
    if not source:
        raise ConfigError("Job missing required 'source' field")
    target_root = _get_optional_str(data, "target_root")
    if not target_root:
        raise ConfigError("Job missing required 'target_root' field")

    identifier = data.get("identifier", "")
    if identifier:
        validate_identifier(identifier)

    exclude = data.get("exclude", [])
    if not isinstance(exclude, list) or not all(isinstance(e, str) for e in exclude):
        raise ConfigError("'exclude' must be a list of strings")

    return JobConfig(
        identifier=identifier,
        source=source,
        target_root=target_root,
        exclude=tuple(e.strip() for e in exclude if e.strip()),
        min_free_space_kb=_get_non_negative_int(data, "min_free_space_kb", 0),
        **sections,
    )


def collect_warnings(config: JobConfig) -> list[str]:
    """Return non-fatal observations about a configuration."""
    warnings = []

    if not config.retention.auto_clean:
        warnings.append("Auto clean disabled, failed and old backups are kept")
    elif config.retention.retain_count == 0:
        warnings.append("retain_count is 0, old backups and logs are never rotated")

    if not config.source.endswith("/"):
        warnings.append(
            f"Source '{config.source}' has no trailing slash, "
            "the folder itself is created inside each snapshot"
        )

    return warnings


def load_config(path: Path | str) -> tuple[JobConfig, list[str]]:
    """Load and validate configuration from TOML file.

    The job identifier may be left out of the file and supplied later
    through apply_overrides().

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (JobConfig object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    check_file_permissions(path)
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    if "job" not in data:
        raise ConfigError("Config file has no [job] table")

    config = _parse_job(
        data["job"],
        retention=_parse_retention(data.get("retention", {})),
        mount=_parse_mount(data.get("mount", {})),
        ssh=_parse_ssh(data.get("ssh", {})),
        paths=_parse_paths(data.get("paths", {})),
    )

    return config, collect_warnings(config)


def apply_overrides(
    config: JobConfig,
    identifier: str | None = None,
    auto_clean: bool | None = None,
    retain_count: int | None = None,
) -> JobConfig:
    """Return a copy of ``config`` with command line overrides applied.

    Raises:
        ConfigError: If an override is invalid or no identifier is set
    """
    changes: dict[str, Any] = {}
    if identifier is not None:
        changes["identifier"] = validate_identifier(identifier)

    retention = config.retention
    if auto_clean is not None:
        retention = dataclasses.replace(retention, auto_clean=auto_clean)
    if retain_count is not None:
        if isinstance(retain_count, bool) or retain_count < 1:
            raise ConfigError("Retain count must be a positive number")
        retention = dataclasses.replace(retention, retain_count=retain_count)
    if retention is not config.retention:
        changes["retention"] = retention

    config = dataclasses.replace(config, **changes)
    if not config.identifier:
        raise ConfigError(
            "Job identifier must be set, see 'identifier' in [job] "
            "and the --job-identifier option"
        )
    return config


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# snail-backup configuration
# Keep this file at mode 0600 or 0400

[job]
identifier = "system"
source = "/"                        # trailing slash: copy contents, not the folder
target_root = "/mnt/backup"
exclude = [
    "/dev",
    "/proc",
    "/sys",
    "/tmp",
    "/mnt",
]
min_free_space_kb = 0               # 0 disables the free space check

[retention]
auto_clean = true                   # purge failed backups, rotate old ones
retain_count = 7                    # backups and logs to keep (0 = keep all)

# Mount the backup device for the duration of the run
# [mount]
# enabled = true
# device = "/dev/ada0p2"
# point = "/mnt/backup"
# fs_type = "ufs"

# Pull from a remote source, e.g. source = "backup@server:/home/"
# [ssh]
# enabled = true
# port = 22
# key_file = "/root/.ssh/backup_key"

# [paths]
# log_root = "/var/log/snail_backup"
# run_root = "/var/run/snail_backup"
"""
