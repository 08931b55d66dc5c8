"""Package manager registry: how to query, install and remove packages."""

import re
import shlex
from collections.abc import Callable
from dataclasses import dataclass

from onboard.environment import EnvironmentProfile

from .models import PackageSpec

VERSION_PATTERN = r"(\d+(?:\.\d+)+[\w.+-]*)"

_NPM_TOP_LEVEL = re.compile(r"^[├└`+|][─-]+[┬-]?\s+((?:@[^@\s/]+/)?[^@\s]+)@", re.MULTILINE)


def required_by(package: str, output: str) -> list[str]:
    """Dependents listed on the ``Required-by:`` line of ``pip show``."""
    match = re.search(r"^Required-by:[ \t]*(.*)$", output, re.MULTILINE)
    if not match:
        return []
    return [name.strip() for name in match.group(1).split(",") if name.strip()]


def npm_tree_roots(package: str, output: str) -> list[str]:
    """Other top-level global packages in an ``npm ls`` tree filtered to ``package``."""
    return [name for name in _NPM_TOP_LEVEL.findall(output) if name != package]


@dataclass(frozen=True)
class PackageManager:
    name: str
    category: str
    check: str
    install: str
    uninstall: str
    version_pattern: str | None = None
    require_match: bool = False
    dependents: str | None = None
    dependents_parser: Callable[[str, str], list[str]] | None = None

    def check_command(self, package: str) -> str:
        return self.check.format(package=shlex.quote(package))

    def install_command(self, spec: PackageSpec) -> str:
        return self.install.format(package=shlex.quote(spec.target))

    def uninstall_command(self, package: str) -> str:
        return self.uninstall.format(package=shlex.quote(package))

    def dependents_command(self, package: str) -> str | None:
        if self.dependents is None:
            return None
        return self.dependents.format(package=shlex.quote(package))

    def parse_dependents(self, package: str, output: str) -> list[str]:
        if self.dependents_parser is None:
            return []
        return self.dependents_parser(package, output)

    def parse_presence(self, package: str, output: str) -> tuple[bool, str | None]:
        """Interpret successful check output as (present, version)."""
        if self.version_pattern:
            pattern = self.version_pattern.format(package=re.escape(package))
            match = re.search(pattern, output, re.MULTILINE | re.IGNORECASE)
            if match:
                return True, match.group(1)
            if self.require_match:
                return False, None
        match = re.search(VERSION_PATTERN, output)
        return True, match.group(1) if match else None


_MANAGERS = [
    PackageManager(
        name="apt-get",
        category="system",
        check="dpkg -s {package}",
        install="sudo apt-get install -y {package}",
        uninstall="sudo apt-get remove -y {package}",
        version_pattern=r"^Version:\s*(\S+)",
    ),
    PackageManager(
        name="yum",
        category="system",
        check="rpm -q {package}",
        install="sudo yum install -y {package}",
        uninstall="sudo yum remove -y {package}",
    ),
    PackageManager(
        name="brew",
        category="system",
        check="brew list --versions {package}",
        install="brew install {package}",
        uninstall="brew uninstall {package}",
        version_pattern=r"^{package}\s+(\S+)",
        require_match=True,
    ),
    PackageManager(
        name="choco",
        category="system",
        check="choco list --local-only --exact {package}",
        install="choco install -y {package}",
        uninstall="choco uninstall -y {package}",
        version_pattern=r"^{package}\s+(\S+)",
        require_match=True,
    ),
    PackageManager(
        name="scoop",
        category="system",
        check="scoop list {package}",
        install="scoop install {package}",
        uninstall="scoop uninstall {package}",
        version_pattern=r"^\s*{package}\s+(\S+)",
        require_match=True,
    ),
    PackageManager(
        name="winget",
        category="system",
        check="winget list --exact --id {package}",
        install="winget install --exact --id {package}",
        uninstall="winget uninstall --exact --id {package}",
        version_pattern=r"{package}\s+(\d\S*)",
        require_match=True,
    ),
    PackageManager(
        name="npm",
        category="npm",
        check="npm list -g --depth=0 {package}",
        install="npm install -g {package}",
        uninstall="npm uninstall -g {package}",
        version_pattern=r"{package}@(\S+)",
        require_match=True,
        dependents="npm ls -g --all {package}",
        dependents_parser=npm_tree_roots,
    ),
    PackageManager(
        name="pip3",
        category="python",
        check="pip3 show {package}",
        install="pip3 install {package}",
        uninstall="pip3 uninstall -y {package}",
        version_pattern=r"^Version:\s*(\S+)",
        dependents="pip3 show {package}",
        dependents_parser=required_by,
    ),
    PackageManager(
        name="pip",
        category="python",
        check="pip show {package}",
        install="pip install {package}",
        uninstall="pip uninstall -y {package}",
        version_pattern=r"^Version:\s*(\S+)",
        dependents="pip show {package}",
        dependents_parser=required_by,
    ),
]

MANAGERS: dict[str, PackageManager] = {m.name: m for m in _MANAGERS}


def managers_for(category: str) -> list[PackageManager]:
    """Known managers for a category, in preference order."""
    return [m for m in _MANAGERS if m.category == category]


def select_manager(profile: EnvironmentProfile, category: str) -> PackageManager | None:
    """First manager for ``category`` that the environment reports available."""
    available = [m for m in managers_for(category) if profile.has_manager(m.name)]
    if not available:
        return None
    # Honour the profile's own ordering (platform preference).
    return min(available, key=lambda m: profile.package_managers.index(m.name))


def get_manager(name: str) -> PackageManager | None:
    return MANAGERS.get(name)


__all__ = [
    "PackageManager",
    "required_by",
    "npm_tree_roots",
    "MANAGERS",
    "managers_for",
    "select_manager",
    "get_manager",
]
