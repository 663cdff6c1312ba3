"""Transfer engine invocation.

The transfer is an rsync subprocess. Its command line is built as an
argument list and never passed through a shell.
"""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Callable, Optional, Sequence

from .. import SENTINEL_NAME
from ..__util__ import exec_subprocess

logger = logging.getLogger(__name__)

RSYNC = "rsync"

# -a archive (recursive, perms, owner, group, times, links, devices)
# -A ACLs, -X xattrs, -H hard links
RSYNC_FLAGS = [
    "-aAXH",
    "--numeric-ids",
    "--delete",
    "--sparse",
    "--quiet",
]

TransferFunc = Callable[[Sequence[str]], int]


def build_rsync_command(
    source: str,
    destination: Path,
    log_file: Path,
    link_dest: Optional[Path] = None,
    exclude: Sequence[str] = (),
    ssh_command: Optional[Sequence[str]] = None,
) -> list[str]:
    """Build the rsync argument list for one snapshot.

    Args:
        source: Source location, passed through unchanged
        destination: New snapshot directory
        log_file: File rsync appends its own log to
        link_dest: Previous complete snapshot to hard link unchanged files to
        exclude: Extra exclusion patterns
        ssh_command: Remote shell command as an argument list

    Returns:
        The command as a list of arguments
    """
    cmd = [RSYNC, *RSYNC_FLAGS]
    if link_dest is not None:
        cmd.append(f"--link-dest={link_dest}")
    # Anchored so only a sentinel at the transfer root is matched
    cmd.append(f"--exclude=/{SENTINEL_NAME}")
    cmd += [f"--exclude={pattern}" for pattern in exclude]
    if ssh_command:
        cmd += ["-e", shlex.join(ssh_command)]
    cmd.append(f"--log-file={log_file}")
    cmd += [source, f"{destination}/"]
    logger.debug("Transfer command: %s", cmd)
    return cmd


def run_transfer(command: Sequence[str]) -> int:
    """Run the transfer and block until it exits.

    Returns:
        The process exit status
    """
    result = exec_subprocess(
        list(command),
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
        check=False,
    )
    if result.returncode != 0 and result.stderr:
        for line in result.stderr.splitlines():
            if line.strip():
                logger.warning("rsync: %s", line)
    return result.returncode
