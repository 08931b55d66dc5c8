"""Pytest fixtures and utilities for onboard tests."""

import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from onboard.environment import EnvironmentProfile
from onboard.execution import CommandOutcome

SAMPLE_MANIFEST = """\
name: widgets
description: Widget service
dependencies:
  system: [git, jq]
  npm: [typescript]
  python: ["requests>=2.0"]
environment:
  required: [DATABASE_URL, API_KEY]
  optional: [PORT]
  defaults:
    PORT: "3000"
setup_steps:
  - name: Install hooks
    command: make hooks
verification:
  checks:
    - type: command
      name: git present
      command: git --version
      priority: critical
      tags: [tools]
    - type: file
      name: env file
      path: .env
      tags: [config]
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def state_path(temp_dir: Path, monkeypatch) -> Path:
    """Point the state file at a temporary location."""
    path = temp_dir / ".onboard-state.json"
    monkeypatch.setenv("ONBOARD_STATE", str(path))
    return path


@pytest.fixture
def cache_dir(temp_dir: Path, monkeypatch) -> Path:
    """Point the manifest cache at a temporary directory."""
    path = temp_dir / "cache"
    monkeypatch.setenv("ONBOARD_CACHE_DIR", str(path))
    return path


@pytest.fixture
def sample_manifest() -> str:
    return SAMPLE_MANIFEST


@pytest.fixture
def linux_profile() -> EnvironmentProfile:
    return EnvironmentProfile(
        os_family="Linux",
        platform="linux",
        arch="x86_64",
        shell="/bin/bash",
        package_managers=("apt-get", "npm", "pip3"),
        tool_versions={"git": "2.43.0", "node": "20.11.0", "python": "3.12.1"},
    )


class FakeRunner:
    """Stand-in for ``run_command`` answering by command prefix.

    Unmatched commands succeed with empty output. Every call is recorded
    in ``calls``.
    """

    def __init__(self, responses: dict[str, CommandOutcome] | None = None):
        self.responses = dict(responses or {})
        self.calls: list[str] = []

    def on(self, prefix: str, output: str = "", returncode: int = 0, timed_out: bool = False):
        self.responses[prefix] = CommandOutcome(output, returncode, timed_out)
        return self

    async def __call__(self, command: str, timeout=None, env=None, cwd=None) -> CommandOutcome:
        self.calls.append(command)
        for prefix in sorted(self.responses, key=len, reverse=True):
            if command.startswith(prefix):
                return self.responses[prefix]
        return CommandOutcome("", 0)

    def ran(self, prefix: str) -> bool:
        return any(call.startswith(prefix) for call in self.calls)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def mock_tty() -> Generator[None, None, None]:
    """Mock sys.stdin.isatty to return True."""
    with patch("sys.stdin.isatty", return_value=True):
        yield


@pytest.fixture
def mock_no_tty() -> Generator[None, None, None]:
    """Mock sys.stdin.isatty to return False."""
    with patch("sys.stdin.isatty", return_value=False):
        yield
