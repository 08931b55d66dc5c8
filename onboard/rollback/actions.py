"""Reversible actions planned from the recorded installation state.

Each planner turns one phase's records into a list of ``RollbackAction``
objects. An action knows how to detect drift (the target no longer
matches what was recorded, or a package other software still depends
on) and how to undo itself; it never decides whether it should run.
"""

import logging
import os
import shlex
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from onboard.configgen import get_git_config
from onboard.errors import OnboardError
from onboard.execution import QUERY_TIMEOUT, UNINSTALL_TIMEOUT, run_command
from onboard.installer.managers import PackageManager, get_manager
from onboard.installer.models import CategoryLedger
from onboard.paths import sha256_file
from onboard.state import InstallationState

from .models import RollbackPhase

_logging = logging.getLogger(__name__)


@dataclass
class RollbackAction:
    phase: RollbackPhase
    target: str
    description: str
    apply: Callable[[], Awaitable[None]]
    check_drift: Callable[[], Awaitable[str | None]]


def _file_drift(path: Path, digest: str | None) -> Callable[[], Awaitable[str | None]]:
    async def check() -> str | None:
        current = sha256_file(path)
        if current is None:
            return f"{path} was removed since it was generated"
        if digest and current != digest:
            return f"{path} was modified since it was generated"
        return None
    return check


def _remove_file(path: Path) -> Callable[[], Awaitable[None]]:
    async def apply() -> None:
        path.unlink(missing_ok=True)
    return apply


def _restore_backup(path: Path, backup: Path) -> Callable[[], Awaitable[None]]:
    async def apply() -> None:
        if not backup.exists():
            raise OnboardError(f"Backup {backup} is missing, cannot restore {path}")
        os.replace(backup, path)
        _logging.debug(f"Restored {path} from {backup}")
    return apply


def _step_result(state: InstallationState, name: str) -> dict[str, Any]:
    record = state.step(name)
    if record is None:
        return {}
    return record.result


def plan_dependencies(state: InstallationState) -> list[RollbackAction]:
    actions = []
    for record in state.dependencies:
        category = record.get("category")
        ledger = CategoryLedger.from_dict(record)
        if not category or not ledger.installed:
            continue
        manager = get_manager(ledger.manager) if ledger.manager else None
        for package in ledger.installed:
            actions.append(_uninstall_action(category, package, manager, ledger.manager))
    return actions


async def _dependents_warning(manager: PackageManager, package: str) -> str | None:
    """Name the installed packages that still depend on ``package``, if any."""
    command = manager.dependents_command(package)
    if command is None:
        return None
    outcome = await run_command(command, timeout=QUERY_TIMEOUT)
    if not outcome.ok:
        _logging.debug(f"Could not list dependents of {package}: {outcome.output}")
        return None
    dependents = manager.parse_dependents(package, outcome.output)
    if not dependents:
        return None
    shown = ", ".join(dependents[:3]) + ("..." if len(dependents) > 3 else "")
    return f"{package} is required by {len(dependents)} other package(s): {shown}"


def _uninstall_action(
    category: str, package: str, manager: PackageManager | None, manager_name: str | None
) -> RollbackAction:
    target = f"{category}:{package}"

    async def check_drift() -> str | None:
        if manager is None:
            return None
        outcome = await run_command(manager.check_command(package), timeout=QUERY_TIMEOUT)
        if not outcome.ok or not manager.parse_presence(package, outcome.output)[0]:
            return f"{package} is no longer installed"
        return await _dependents_warning(manager, package)

    async def apply() -> None:
        if manager is None:
            raise OnboardError(f"Unknown package manager '{manager_name}' recorded for {package}")
        outcome = await run_command(manager.uninstall_command(package), timeout=UNINSTALL_TIMEOUT)
        if not outcome.ok:
            raise OnboardError(f"{manager.name} could not remove {package}: {outcome.output}")

    description = (
        f"uninstall {package} via {manager.uninstall_command(package)}"
        if manager
        else f"uninstall {package}"
    )
    return RollbackAction(RollbackPhase.DEPENDENCIES, target, description, apply, check_drift)


def plan_config(state: InstallationState) -> list[RollbackAction]:
    config = _step_result(state, "configure").get("config") or {}
    actions = []
    for entry in config.get("files") or []:
        path = Path(entry["path"])
        backup = Path(entry["backup"]) if entry.get("backup") else None
        if backup:
            description = f"restore {path} from {backup.name}"
            apply = _restore_backup(path, backup)
        else:
            description = f"remove {path}"
            apply = _remove_file(path)
        actions.append(
            RollbackAction(
                RollbackPhase.CONFIG,
                str(path),
                description,
                apply,
                _file_drift(path, entry.get("sha256")),
            )
        )

    gitignore = config.get("gitignore")
    if gitignore and gitignore.get("added"):
        actions.append(_gitignore_action(gitignore))
    return actions


def _gitignore_action(record: dict[str, Any]) -> RollbackAction:
    path = Path(record["path"])
    added = list(record["added"])

    async def check_drift() -> str | None:
        if not path.exists():
            return f"{path} was removed since it was updated"
        return None

    async def apply() -> None:
        lines = path.read_text(encoding="utf-8").splitlines()
        kept = [line for line in lines if line.strip() not in added]
        if record.get("created") and not any(line.strip() for line in kept):
            path.unlink()
            return
        path.write_text("\n".join(kept) + ("\n" if kept else ""), encoding="utf-8")

    return RollbackAction(
        RollbackPhase.CONFIG,
        f"{path}#entries",
        f"remove {', '.join(added)} from {path}",
        apply,
        check_drift,
    )


def plan_ssh(state: InstallationState) -> list[RollbackAction]:
    ssh = _step_result(state, "configure").get("ssh") or {}
    if not ssh.get("private_key"):
        return []
    digests = ssh.get("sha256") or {}
    actions = []
    for key in (ssh["public_key"], ssh["private_key"]):
        path = Path(key)
        actions.append(
            RollbackAction(
                RollbackPhase.SSH,
                key,
                f"remove {path}",
                _remove_file(path),
                _file_drift(path, digests.get(key)),
            )
        )
    return actions


def plan_git(state: InstallationState) -> list[RollbackAction]:
    git = _step_result(state, "configure").get("git") or {}
    original = git.get("original") or {}
    actions = []
    for key, value in (git.get("values") or {}).items():
        actions.append(_git_action(key, value, original.get(key)))
    return actions


def _git_action(key: str, value: str, original: str | None) -> RollbackAction:
    async def check_drift() -> str | None:
        current = await get_git_config(key)
        if current != value:
            return f"git {key} changed since it was configured (now {current!r})"
        return None

    async def apply() -> None:
        if original is None:
            command = f"git config --global --unset {key}"
        else:
            command = f"git config --global {key} {shlex.quote(original)}"
        outcome = await run_command(command, timeout=QUERY_TIMEOUT)
        if not outcome.ok:
            raise OnboardError(f"Failed to restore git {key}: {outcome.output}")

    if original is None:
        description = f"unset git {key} (was not set before)"
    else:
        description = f"restore git {key}: {value!r} -> {original!r}"
    return RollbackAction(RollbackPhase.GIT, f"git:{key}", description, apply, check_drift)


def plan_docs(state: InstallationState) -> list[RollbackAction]:
    docs = _step_result(state, "docs")
    files = docs.get("files") or []
    actions = []
    recorded = set()
    for entry in files:
        path = Path(entry["path"])
        recorded.add(path)
        actions.append(
            RollbackAction(
                RollbackPhase.DOCS,
                str(path),
                f"remove {path}",
                _remove_file(path),
                _file_drift(path, entry.get("sha256")),
            )
        )
    if docs.get("output_dir") and docs.get("created_dir"):
        actions.append(_docs_dir_action(Path(docs["output_dir"]), recorded))
    return actions


def _docs_dir_action(directory: Path, recorded: set[Path]) -> RollbackAction:
    async def check_drift() -> str | None:
        if not directory.is_dir():
            return None
        extra = [p for p in directory.iterdir() if p not in recorded]
        if extra:
            return f"{directory} contains files not generated by onboard"
        return None

    async def apply() -> None:
        if directory.is_dir():
            directory.rmdir()

    return RollbackAction(
        RollbackPhase.DOCS, str(directory), f"remove directory {directory}", apply, check_drift
    )


PLANNERS: dict[RollbackPhase, Callable[[InstallationState], list[RollbackAction]]] = {
    RollbackPhase.DEPENDENCIES: plan_dependencies,
    RollbackPhase.CONFIG: plan_config,
    RollbackPhase.SSH: plan_ssh,
    RollbackPhase.GIT: plan_git,
    RollbackPhase.DOCS: plan_docs,
}


__all__ = [
    "RollbackAction",
    "PLANNERS",
    "plan_dependencies",
    "plan_config",
    "plan_ssh",
    "plan_git",
    "plan_docs",
]
