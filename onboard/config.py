"""Immutable option values built once per operation."""

from dataclasses import dataclass

from onboard.errors import ConfigError
from onboard.rollback.models import INSTALL_ORDER, RollbackPhase
from onboard.verification.models import Priority

DEFAULT_VERIFY_WORKERS = 4
MAX_VERIFY_WORKERS = 32


@dataclass(frozen=True)
class InitOptions:
    """Options for ``onboard init``."""
    no_cache: bool = False
    dry_run: bool = False
    skip_install: bool = False
    skip_setup: bool = False
    assume_yes: bool = False
    branch: str | None = None

    def __post_init__(self):
        if self.branch is not None and not self.branch.strip():
            raise ConfigError("branch must be a non-empty string")


@dataclass(frozen=True)
class VerifyOptions:
    """Options for ``onboard verify``."""
    min_priority: Priority | None = None
    tags: frozenset[str] = frozenset()
    names: frozenset[str] = frozenset()
    verbose: bool = False
    max_workers: int = DEFAULT_VERIFY_WORKERS
    troubleshoot: bool = False

    def __post_init__(self):
        if not isinstance(self.max_workers, int) or not (
            1 <= self.max_workers <= MAX_VERIFY_WORKERS
        ):
            raise ConfigError(
                f"max_workers must be between 1 and {MAX_VERIFY_WORKERS}"
            )
        if self.min_priority is not None and not isinstance(self.min_priority, Priority):
            raise ConfigError("min_priority must be a Priority")
        for tag in self.tags:
            if not tag:
                raise ConfigError("tags must be non-empty strings")


@dataclass(frozen=True)
class RollbackOptions:
    """Options for ``onboard rollback``.

    ``phases`` empty means every phase except dependencies, which is
    only included by default when ``unsafe`` is set.
    """
    phases: tuple[RollbackPhase, ...] = ()
    unsafe: bool = False
    force: bool = False
    dry_run: bool = False

    def __post_init__(self):
        for phase in self.phases:
            if not isinstance(phase, RollbackPhase):
                raise ConfigError(f"Invalid rollback phase: {phase!r}")
        if len(set(self.phases)) != len(self.phases):
            raise ConfigError("rollback phases must not repeat")

    @property
    def explicit(self) -> bool:
        return bool(self.phases)

    def selected_phases(self) -> tuple[RollbackPhase, ...]:
        if self.phases:
            return self.phases
        return tuple(
            p for p in INSTALL_ORDER
            if p != RollbackPhase.DEPENDENCIES or self.unsafe
        )


__all__ = [
    "DEFAULT_VERIFY_WORKERS",
    "InitOptions",
    "VerifyOptions",
    "RollbackOptions",
]
