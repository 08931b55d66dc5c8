"""Environment detection: OS family, shell, package managers and tool versions."""

import logging
import os
import platform
import re
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Any

SUBPROCESS_TIMEOUT = 5

_OS_FAMILIES = {"win32": "Windows", "darwin": "macOS"}

# Managers looked for on each platform, in preference order.
_PLATFORM_MANAGERS = {
    "win32": ("choco", "scoop", "winget"),
    "darwin": ("brew",),
    "linux": ("apt-get", "yum", "brew"),
}
_ECOSYSTEM_MANAGERS = ("npm", "pip3", "pip")

_TOOL_VERSION_COMMANDS = {
    "git": "git --version",
    "node": "node --version",
    "npm": "npm --version",
    "python": "python3 --version",
    "docker": "docker --version",
}

_logging = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentProfile:
    os_family: str
    platform: str
    arch: str
    shell: str
    package_managers: tuple[str, ...] = ()
    tool_versions: dict[str, str] = field(default_factory=dict)

    @property
    def has_docker(self) -> bool:
        return "docker" in self.tool_versions

    def has_manager(self, name: str) -> bool:
        return name in self.package_managers

    def to_dict(self) -> dict[str, Any]:
        return {
            "os": self.os_family,
            "platform": self.platform,
            "arch": self.arch,
            "shell": self.shell,
            "package_managers": list(self.package_managers),
            "tool_versions": dict(self.tool_versions),
            "has_docker": self.has_docker,
        }


def _extract_version(output: str) -> str | None:
    for pattern in (r"(\d+\.\d+\.\d+)", r"(\d+\.\d+)"):
        match = re.search(pattern, output)
        if match:
            return match.group(1)
    return None


def get_tool_version(command: str) -> str | None:
    try:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            timeout=SUBPROCESS_TIMEOUT,
            text=True,
        )
    except (subprocess.TimeoutExpired, OSError):
        return None
    if result.returncode != 0:
        return None
    return _extract_version(result.stdout.strip() or result.stderr.strip())


def detect_shell() -> str:
    if sys.platform == "win32":
        return os.environ.get("ComSpec", "cmd.exe")
    return os.environ.get("SHELL", "/bin/sh")


def detect_package_managers(platform_name: str | None = None) -> tuple[str, ...]:
    platform_name = platform_name or sys.platform
    candidates = _PLATFORM_MANAGERS.get(platform_name, ()) + _ECOSYSTEM_MANAGERS
    return tuple(name for name in candidates if shutil.which(name))


def detect_environment() -> EnvironmentProfile:
    """Build the environment profile for this invocation.

    Blocking; callers on the event loop run it via ``asyncio.to_thread``.
    """
    platform_name = sys.platform
    versions = {}
    for tool, command in _TOOL_VERSION_COMMANDS.items():
        binary = command.split(maxsplit=1)[0]
        if not shutil.which(binary):
            continue
        version = get_tool_version(command)
        if version:
            versions[tool] = version

    profile = EnvironmentProfile(
        os_family=_OS_FAMILIES.get(platform_name, "Linux"),
        platform=platform_name,
        arch=platform.machine(),
        shell=detect_shell(),
        package_managers=detect_package_managers(platform_name),
        tool_versions=versions,
    )
    _logging.debug(f"Detected environment: {profile.to_dict()}")
    return profile


__all__ = [
    "EnvironmentProfile",
    "get_tool_version",
    "detect_shell",
    "detect_package_managers",
    "detect_environment",
]
