"""Pytest configuration and shared fixtures."""

import shutil
from pathlib import Path

import pytest

from snail_backup import SENTINEL_NAME
from snail_backup.config import JobConfig, PathsConfig, RetentionConfig


class FakeTransfer:
    """Stand-in for the rsync subprocess.

    Copies the source tree into the destination and returns a fixed exit
    status. Every command it is called with is recorded.
    """

    def __init__(self, returncode=0, on_call=None):
        self.returncode = returncode
        self.on_call = on_call
        self.calls = []

    def __call__(self, command):
        self.calls.append(list(command))
        if self.on_call is not None:
            self.on_call(command)
        source, destination = command[-2], command[-1]
        shutil.copytree(source, destination, dirs_exist_ok=True)
        return self.returncode

    @property
    def last_command(self):
        return self.calls[-1]


def _make_snapshot(job_folder: Path, name: str, in_progress=False, content="data") -> Path:
    """Create a snapshot directory holding one file, optionally with the sentinel."""
    path = Path(job_folder) / name
    path.mkdir(parents=True)
    (path / "file.txt").write_text(content)
    if in_progress:
        (path / SENTINEL_NAME).touch()
    return path


@pytest.fixture
def fake_transfer():
    """Return the FakeTransfer class for building transfer stand-ins."""
    return FakeTransfer


@pytest.fixture
def make_snapshot():
    """Return a helper creating snapshot directories."""
    return _make_snapshot


@pytest.fixture
def source_dir(tmp_path):
    """Create a small source tree to back up."""
    source = tmp_path / "source"
    (source / "etc").mkdir(parents=True)
    (source / "etc" / "hosts").write_text("127.0.0.1 localhost\n")
    (source / "readme.txt").write_text("hello\n")
    return source


@pytest.fixture
def job_config(tmp_path, source_dir):
    """Return a JobConfig rooted entirely inside tmp_path."""
    return JobConfig(
        identifier="testjob",
        source=f"{source_dir}/",
        target_root=str(tmp_path / "backup"),
        retention=RetentionConfig(auto_clean=True, retain_count=2),
        paths=PathsConfig(
            log_root=str(tmp_path / "log"),
            run_root=str(tmp_path / "run"),
        ),
    )


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml(tmp_path, source_dir):
    """Return a sample valid TOML configuration string."""
    return f"""
[job]
identifier = "daily"
source = "{source_dir}/"
target_root = "{tmp_path / 'backup'}"
exclude = ["/tmp", " /proc ", ""]
min_free_space_kb = 0

[retention]
auto_clean = true
retain_count = 3

[paths]
log_root = "{tmp_path / 'log'}"
run_root = "{tmp_path / 'run'}"
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[job]
source = "/home/"
target_root = "/mnt/backup"
"""


@pytest.fixture
def write_config(tmp_config_dir):
    """Return a helper writing TOML content to an owner-only config file."""

    def _write(content, name="job.toml", mode=0o600):
        path = tmp_config_dir / name
        path.write_text(content)
        path.chmod(mode)
        return path

    return _write


@pytest.fixture
def config_file(write_config, sample_config_toml):
    """Create a temporary config file with sample content."""
    return write_config(sample_config_toml, "config.toml")


@pytest.fixture
def minimal_config_file(write_config, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    return write_config(minimal_config_toml, "minimal.toml")
