"""Rollback engine: reverse recorded phases with safety gates."""

from .models import (
    INSTALL_ORDER,
    ItemStatus,
    PhaseReport,
    RollbackItem,
    RollbackPhase,
    RollbackReport,
    rollback_order,
)
from .engine import RollbackEngine, fully_reversed, pending_actions

__all__ = [
    "INSTALL_ORDER",
    "ItemStatus",
    "PhaseReport",
    "RollbackItem",
    "RollbackPhase",
    "RollbackReport",
    "rollback_order",
    "RollbackEngine",
    "fully_reversed",
    "pending_actions",
]
