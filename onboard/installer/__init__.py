"""Dependency installation: package managers, ledgers and summaries."""

from .installation import (
    DependencyInstaller,
    DryRunInstallExecutor,
    InstallExecutor,
    RealInstallExecutor,
    calculate_summary,
    ledger_from_records,
    ledger_to_records,
)
from .managers import (
    MANAGERS,
    PackageManager,
    get_manager,
    managers_for,
    npm_tree_roots,
    required_by,
    select_manager,
)
from .models import (
    CategoryLedger,
    FailedPackage,
    InstallSummary,
    PackageSpec,
    parse_package_spec,
)

__all__ = [
    "DependencyInstaller",
    "DryRunInstallExecutor",
    "InstallExecutor",
    "RealInstallExecutor",
    "calculate_summary",
    "ledger_from_records",
    "ledger_to_records",
    "MANAGERS",
    "PackageManager",
    "get_manager",
    "managers_for",
    "npm_tree_roots",
    "required_by",
    "select_manager",
    "CategoryLedger",
    "FailedPackage",
    "InstallSummary",
    "PackageSpec",
    "parse_package_spec",
]
