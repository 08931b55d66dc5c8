"""Selective reversal of recorded installation phases."""

import logging
from typing import TYPE_CHECKING

from onboard.errors import OnboardError, RollbackSafetyError
from onboard.state import InstallationState, InstallationStateStore

from .actions import PLANNERS, RollbackAction
from .models import (
    INSTALL_ORDER,
    ItemStatus,
    PhaseReport,
    RollbackItem,
    RollbackPhase,
    RollbackReport,
    rollback_order,
)

if TYPE_CHECKING:
    from onboard.config import RollbackOptions

_logging = logging.getLogger(__name__)


def pending_actions(state: InstallationState, phase: RollbackPhase) -> list[RollbackAction]:
    """Actions for ``phase`` that have not been reversed yet."""
    return [
        action
        for action in PLANNERS[phase](state)
        if not state.is_reversed(phase.value, action.target)
    ]


def fully_reversed(state: InstallationState) -> bool:
    return all(not pending_actions(state, phase) for phase in INSTALL_ORDER)


class RollbackEngine:
    """Reverses a subset of phases recorded in the installation state.

    Phases run in reverse installation order. Each completed item is
    persisted immediately, so an interrupted or partially failed
    rollback can be re-run and will only report what remains.
    """

    def __init__(self, store: InstallationStateStore):
        self.store = store

    def check_safety(self, options: "RollbackOptions") -> None:
        if RollbackPhase.DEPENDENCIES in options.selected_phases() and not options.unsafe:
            raise RollbackSafetyError(
                "Uninstalling dependencies can break other software that shares them",
                hint="rerun with --unsafe to uninstall the packages onboard installed",
            )

    def load_state(self) -> InstallationState:
        state = self.store.load()
        if state is None:
            raise OnboardError(
                "No installation state found",
                hint="run 'onboard init <repo>' first",
            )
        return state

    async def rollback(self, options: "RollbackOptions") -> RollbackReport:
        self.check_safety(options)
        state = self.load_state()
        report = RollbackReport(dry_run=options.dry_run)

        for phase in rollback_order(options.selected_phases()):
            phase_report = PhaseReport(phase)
            for action in pending_actions(state, phase):
                item = await self._run_action(action, options)
                phase_report.items.append(item)
                if item.status == ItemStatus.DONE:
                    state.mark_reversed(phase.value, action.target)
                    self.store.save(state)
            if phase_report.nothing_to_do:
                _logging.debug(f"Phase '{phase.value}': nothing to do")
            report.phases.append(phase_report)

        if not options.dry_run and state.installed and fully_reversed(state):
            state.installed = False
            self.store.save(state)
        return report

    async def _run_action(
        self, action: RollbackAction, options: "RollbackOptions"
    ) -> RollbackItem:
        def item(status: ItemStatus, reason: str | None = None) -> RollbackItem:
            return RollbackItem(action.phase, action.target, action.description, status, reason)

        if not options.force:
            try:
                drift = await action.check_drift()
            except (OSError, OnboardError) as e:
                return item(ItemStatus.FAILED, f"Pre-check failed: {e}")
            if drift:
                _logging.info(f"Skipping {action.target}: {drift}")
                return item(ItemStatus.SKIPPED, f"{drift} (use --force to proceed anyway)")

        if options.dry_run:
            return item(ItemStatus.PLANNED)

        try:
            await action.apply()
        except (OSError, OnboardError) as e:
            _logging.debug(f"Rollback of {action.target} failed: {e}")
            return item(ItemStatus.FAILED, str(e))
        return item(ItemStatus.DONE)


__all__ = ["RollbackEngine", "pending_actions", "fully_reversed"]
