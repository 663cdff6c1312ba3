"""List command: Show the snapshots of a job."""

import argparse
import json
import logging

from rich.table import Table

from .. import __logger__
from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.chain import SnapshotState, resolve_link_source, scan_snapshots
from .common import get_log_level, load_job_config

logger = logging.getLogger(__name__)

STATE_STYLES = {
    SnapshotState.COMPLETE: "green",
    SnapshotState.IN_PROGRESS: "yellow",
    SnapshotState.MALFORMED: "red",
}


def execute_list(args: argparse.Namespace) -> int:
    """Execute the list command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    try:
        config = load_job_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    snapshots = scan_snapshots(config.job_folder)
    latest = resolve_link_source(config.job_folder)

    if getattr(args, "json", False):
        print(
            json.dumps(
                [
                    {
                        "name": s.name,
                        "path": str(s.path),
                        "state": s.state.value,
                        "latest": latest is not None and s.name == latest.name,
                    }
                    for s in snapshots
                ],
                indent=2,
            )
        )
        return 0

    table = Table(title=f"Job {config.identifier}: {config.job_folder}")
    table.add_column("Snapshot")
    table.add_column("State")
    table.add_column("")
    for snapshot in snapshots:
        style = STATE_STYLES[snapshot.state]
        marker = "latest" if latest is not None and snapshot.name == latest.name else ""
        table.add_row(snapshot.name, f"[{style}]{snapshot.state.value}[/{style}]", marker)

    __logger__.cons.print(table)
    if not snapshots:
        __logger__.cons.print("No backups found")
    return 0
