"""Status command: Show lock holder and backup health of a job."""

import argparse
import logging
from collections import Counter

from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.chain import SnapshotState, resolve_link_source, scan_snapshots
from ..lock import JobLock, LockError
from ..retention import list_log_files
from .common import get_log_level, load_job_config

logger = logging.getLogger(__name__)


def execute_status(args: argparse.Namespace) -> int:
    """Execute the status command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (1 if unfinished backups are lying around)
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    try:
        config = load_job_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    lock = JobLock(config.identifier, config.run_root)
    try:
        held = lock.is_held_elsewhere()
    except LockError as e:
        logger.error("%s", e)
        return 1
    record, alive = lock.holder_status()
    snapshots = scan_snapshots(config.job_folder)
    counts = Counter(s.state for s in snapshots)
    latest = resolve_link_source(config.job_folder)
    logs = list_log_files(config.log_folder)

    print(f"snail-backup Status: job {config.identifier}")
    print("=" * 60)
    print(f"Source: {config.source}")
    print(f"Target: {config.job_folder}")
    # The kernel lock decides; the record only names the holder
    if held and record is not None:
        print(f"Lock: held by PID {record.pid} since {record.started_at}")
    elif held:
        print("Lock: held (holder unknown)")
    elif record is not None:
        state = "running" if alive else "not running"
        print(f"Lock: free, stale record for PID {record.pid} ({state})")
    else:
        print("Lock: free")

    print(
        f"Backups: {counts[SnapshotState.COMPLETE]} complete, "
        f"{counts[SnapshotState.IN_PROGRESS]} unfinished, "
        f"{counts[SnapshotState.MALFORMED]} ignored"
    )
    print(f"Latest: {latest.name if latest else '(none)'}")
    print(f"Logs: {len(logs)} in {config.log_folder}")
    retention = config.retention
    print(
        f"Retention: auto_clean={str(retention.auto_clean).lower()}, "
        f"retain_count={retention.retain_count}"
    )
    print("=" * 60)

    # Unfinished backups are only expected while a run is active
    healthy = counts[SnapshotState.IN_PROGRESS] == 0 or held
    print("Overall: OK" if healthy else "Overall: unfinished backups found")
    return 0 if healthy else 1
