"""Data models for dependency installation."""

import logging
from dataclasses import dataclass, field
from typing import Any

from packaging.requirements import InvalidRequirement, Requirement
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

_logging = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageSpec:
    """A declared package with an optional version constraint.

    ``target`` is what gets passed to the install command.
    """
    category: str
    name: str
    target: str
    constraint: str | None = None

    def is_satisfied_by(self, version: str | None) -> bool:
        if not self.constraint or not version:
            return True
        try:
            if self.category == "python":
                return SpecifierSet(self.constraint).contains(
                    Version(version), prereleases=True
                )
            return Version(version) == Version(self.constraint)
        except (InvalidVersion, InvalidSpecifier):
            _logging.debug(
                f"Cannot compare {self.name} {version} against '{self.constraint}', treating as satisfied"
            )
            return True


def parse_package_spec(category: str, raw: str) -> PackageSpec:
    """Split a declared package into name and constraint.

    Examples:
        >>> parse_package_spec("npm", "@scope/tool@1.2.3").name
        '@scope/tool'
        >>> parse_package_spec("python", "requests>=2.0").constraint
        '>=2.0'

    Raises:
        ValueError: If a python requirement cannot be parsed
    """
    raw = raw.strip()
    if category == "python":
        try:
            req = Requirement(raw)
        except InvalidRequirement as e:
            raise ValueError(f"Invalid requirement '{raw}': {e}") from None
        return PackageSpec(category, req.name, raw, str(req.specifier) or None)
    if category == "npm":
        at = raw.rfind("@")
        if at > 0:
            return PackageSpec(category, raw[:at], raw, raw[at + 1:] or None)
    return PackageSpec(category, raw, raw)


@dataclass
class FailedPackage:
    package: str
    reason: str


@dataclass
class CategoryLedger:
    installed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[FailedPackage] = field(default_factory=list)
    manager: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "manager": self.manager,
            "installed": list(self.installed),
            "skipped": list(self.skipped),
            "failed": [{"package": f.package, "reason": f.reason} for f in self.failed],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CategoryLedger":
        return cls(
            installed=list(data.get("installed", [])),
            skipped=list(data.get("skipped", [])),
            failed=[
                FailedPackage(f["package"], f.get("reason", ""))
                for f in data.get("failed", [])
            ],
            manager=data.get("manager"),
        )


@dataclass
class InstallSummary:
    installed: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.installed + self.skipped + self.failed

    def to_dict(self) -> dict[str, int]:
        return {"installed": self.installed, "skipped": self.skipped, "failed": self.failed}


__all__ = [
    "PackageSpec",
    "parse_package_spec",
    "FailedPackage",
    "CategoryLedger",
    "InstallSummary",
]
