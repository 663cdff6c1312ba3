"""Core backup orchestration for snail-backup.

Chain resolution, the per-snapshot supervisor and the transfer
invocation. Crash recovery and the run orchestration live in
``snail_backup.core.recovery`` and ``snail_backup.core.runner``.
"""

from .chain import Snapshot, SnapshotState, resolve_link_source, scan_snapshots
from .supervisor import JobSupervisor, RunState
from .transfer import build_rsync_command, run_transfer

__all__ = [
    "Snapshot",
    "SnapshotState",
    "scan_snapshots",
    "resolve_link_source",
    "JobSupervisor",
    "RunState",
    "build_rsync_command",
    "run_transfer",
]
