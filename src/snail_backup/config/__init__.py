"""Configuration system for snail-backup.

This module provides TOML-based configuration loading, validation,
and schema definitions for a single backup job.
"""

from .loader import (
    ConfigError,
    apply_overrides,
    find_config_file,
    load_config,
)
from .schema import (
    JobConfig,
    MountConfig,
    PathsConfig,
    RetentionConfig,
    SshConfig,
)

__all__ = [
    "JobConfig",
    "MountConfig",
    "PathsConfig",
    "RetentionConfig",
    "SshConfig",
    "load_config",
    "apply_overrides",
    "find_config_file",
    "ConfigError",
]
