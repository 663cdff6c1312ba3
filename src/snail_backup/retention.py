"""Retention: purge failed snapshots, rotate old snapshots and log files.

Every sweep is idempotent and best effort. Deletion failures are logged
as warnings and counted, never raised, so cleanup can not fail a run
whose backup already succeeded.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .__util__ import LOG_NAME_PATTERN, is_valid_timestamp
from .config import RetentionConfig
from .core.chain import (
    complete_snapshots,
    discard_snapshot,
    in_progress_snapshots,
    purge_discarded,
)

logger = logging.getLogger(__name__)


@dataclass
class RetentionResult:
    """What a retention pass removed."""

    failed_removed: list[str] = field(default_factory=list)
    snapshots_removed: list[str] = field(default_factory=list)
    logs_removed: list[str] = field(default_factory=list)
    errors: int = 0

    @property
    def total_removed(self) -> int:
        return len(self.failed_removed) + len(self.snapshots_removed) + len(self.logs_removed)


def _select_expired(names: list[str], retain_count: int) -> list[str]:
    """Return the oldest ``len(names) - retain_count`` names."""
    names = sorted(names)
    if len(names) <= retain_count:
        return []
    return names[: len(names) - retain_count]


def _remove_dir(path: Path, what: str, removed: list[str], result: RetentionResult) -> None:
    logger.info("Remove %s directory %s", what, path)
    try:
        discard_snapshot(path)
        removed.append(path.name)
    except OSError as e:
        logger.warning("Failed to remove %s directory %s: %s", what, path, e)
        result.errors += 1


def purge_failed_snapshots(job_folder: Path, policy: RetentionConfig, result=None) -> RetentionResult:
    """Delete every snapshot that still holds the sentinel.

    Runs whenever auto clean is enabled, regardless of the retain count.
    Remains of interrupted deletions are removed too.
    """
    result = result or RetentionResult()
    if not policy.auto_clean:
        logger.info("Auto clean disabled, skipping cleanup failure backups")
        return result

    _, errors = purge_discarded(job_folder)
    result.errors += errors
    for snapshot in in_progress_snapshots(job_folder):
        _remove_dir(snapshot.path, "failure backup", result.failed_removed, result)
    return result


def rotate_snapshots(job_folder: Path, policy: RetentionConfig, result=None) -> RetentionResult:
    """Keep only the newest ``retain_count`` complete snapshots."""
    result = result or RetentionResult()
    if not policy.rotation_enabled:
        logger.info(
            "Auto clean disabled, or retain count is zero, skip clean up old backups"
        )
        return result

    complete = {s.name: s for s in complete_snapshots(job_folder)}
    for name in _select_expired(list(complete), policy.retain_count):
        _remove_dir(complete[name].path, "old backup", result.snapshots_removed, result)
    return result


def list_log_files(log_folder: Path) -> list[Path]:
    """Return the timestamp-named log files of a job, oldest first."""
    log_folder = Path(log_folder)
    if not log_folder.is_dir():
        return []
    logs = []
    for item in log_folder.iterdir():
        match = LOG_NAME_PATTERN.match(item.name)
        if match and is_valid_timestamp(match.group(1)) and item.is_file():
            logs.append(item)
    return sorted(logs, key=lambda p: p.name)


def rotate_logs(log_folder: Path, policy: RetentionConfig, result=None) -> RetentionResult:
    """Keep only the newest ``retain_count`` log files."""
    result = result or RetentionResult()
    if not policy.rotation_enabled:
        logger.info("Auto clean disabled, or retain count is zero, skip clean up logs")
        return result

    logs = {p.name: p for p in list_log_files(log_folder)}
    for name in _select_expired(list(logs), policy.retain_count):
        path = logs[name]
        logger.info("Remove old log file %s", path)
        try:
            path.unlink()
            result.logs_removed.append(name)
        except OSError as e:
            logger.warning("Failed to remove old log file %s: %s", path, e)
            result.errors += 1
    return result


def apply_retention(job_folder: Path, log_folder: Path, policy: RetentionConfig) -> RetentionResult:
    """Run all three sweeps in order and return the combined result."""
    result = RetentionResult()
    for sweep, folder in (
        (purge_failed_snapshots, job_folder),
        (rotate_snapshots, job_folder),
        (rotate_logs, log_folder),
    ):
        try:
            sweep(folder, policy, result)
        except OSError as e:
            # Scanning itself failed, e.g. the folder vanished
            logger.warning("Retention sweep %s failed: %s", sweep.__name__, e)
            result.errors += 1

    if result.errors:
        logger.warning("Cleanup finished with %d error(s)", result.errors)
    return result
