"""Data models for rollback planning and reporting."""

from dataclasses import dataclass, field
from enum import Enum

from onboard.errors import ConfigError


class RollbackPhase(Enum):
    DEPENDENCIES = "dependencies"
    CONFIG = "config"
    SSH = "ssh"
    GIT = "git"
    DOCS = "docs"

    @classmethod
    def parse(cls, value: str) -> "RollbackPhase":
        try:
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise ConfigError(
                f"Unknown rollback phase '{value}'. Expected one of: {allowed}"
            ) from None


# Order in which phases were applied; rollback walks it backwards.
INSTALL_ORDER = (
    RollbackPhase.DEPENDENCIES,
    RollbackPhase.CONFIG,
    RollbackPhase.SSH,
    RollbackPhase.GIT,
    RollbackPhase.DOCS,
)


def rollback_order(phases) -> list[RollbackPhase]:
    selected = set(phases)
    return [p for p in reversed(INSTALL_ORDER) if p in selected]


class ItemStatus(Enum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"
    PLANNED = "planned"


@dataclass
class RollbackItem:
    phase: RollbackPhase
    target: str
    description: str
    status: ItemStatus
    reason: str | None = None


@dataclass
class PhaseReport:
    phase: RollbackPhase
    items: list[RollbackItem] = field(default_factory=list)

    @property
    def nothing_to_do(self) -> bool:
        return not self.items


@dataclass
class RollbackReport:
    dry_run: bool
    phases: list[PhaseReport] = field(default_factory=list)

    @property
    def items(self) -> list[RollbackItem]:
        return [item for phase in self.phases for item in phase.items]

    @property
    def failures(self) -> list[RollbackItem]:
        return [i for i in self.items if i.status == ItemStatus.FAILED]

    @property
    def skipped(self) -> list[RollbackItem]:
        return [i for i in self.items if i.status == ItemStatus.SKIPPED]

    @property
    def success(self) -> bool:
        return not self.failures


__all__ = [
    "RollbackPhase",
    "INSTALL_ORDER",
    "rollback_order",
    "ItemStatus",
    "RollbackItem",
    "PhaseReport",
    "RollbackReport",
]
