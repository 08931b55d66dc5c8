"""Tests for the rollback engine."""

import pytest

from onboard.config import RollbackOptions
from onboard.errors import ConfigError, OnboardError, RollbackSafetyError
from onboard.paths import sha256_file
from onboard.rollback import (
    INSTALL_ORDER,
    ItemStatus,
    RollbackEngine,
    RollbackPhase,
    fully_reversed,
    rollback_order,
)
from onboard.state import InstallationState, InstallationStateStore, StepRecord


@pytest.fixture
def project(temp_dir):
    root = temp_dir / "project"
    root.mkdir()
    return root


def configured_state(root) -> InstallationState:
    template = root / ".env.template"
    template.write_text("A=${A}\n")
    env = root / ".env"
    env.write_text("A=new\n")
    backup = root / ".env.backup.20240101000000"
    backup.write_text("A=old\n")
    gitignore = root / ".gitignore"
    gitignore.write_text("node_modules\n.env\n")

    state = InstallationState(installed=True, repository="github.com/acme/widgets")
    state.record_step(
        StepRecord(
            "configure",
            "completed",
            {
                "config": {
                    "files": [
                        {"path": str(template), "sha256": sha256_file(template), "backup": None},
                        {"path": str(env), "sha256": sha256_file(env), "backup": str(backup)},
                    ],
                    "gitignore": {
                        "path": str(gitignore),
                        "added": [".env"],
                        "created": False,
                        "sha256": sha256_file(gitignore),
                    },
                },
                "ssh": None,
                "git": None,
            },
        )
    )
    return state


def save(path, state):
    with InstallationStateStore(path) as store:
        store.save(state)


async def run_rollback(path, **options):
    with InstallationStateStore(path) as store:
        return await RollbackEngine(store).rollback(RollbackOptions(**options))


class TestOptions:
    def test_default_phases_exclude_dependencies(self):
        assert RollbackPhase.DEPENDENCIES not in RollbackOptions().selected_phases()
        assert RollbackOptions(unsafe=True).selected_phases() == INSTALL_ORDER

    def test_explicit_phases(self):
        options = RollbackOptions(phases=(RollbackPhase.GIT,))
        assert options.explicit
        assert options.selected_phases() == (RollbackPhase.GIT,)

    def test_duplicate_phases(self):
        with pytest.raises(ConfigError):
            RollbackOptions(phases=(RollbackPhase.GIT, RollbackPhase.GIT))

    def test_parse_phase(self):
        assert RollbackPhase.parse(" SSH ") == RollbackPhase.SSH
        with pytest.raises(ConfigError):
            RollbackPhase.parse("everything")

    def test_rollback_order_is_reverse_install_order(self):
        assert rollback_order([RollbackPhase.CONFIG, RollbackPhase.DOCS, RollbackPhase.DEPENDENCIES]) == [
            RollbackPhase.DOCS,
            RollbackPhase.CONFIG,
            RollbackPhase.DEPENDENCIES,
        ]


@pytest.mark.asyncio
async def test_dependencies_require_unsafe(temp_dir, project, monkeypatch, fake_runner):
    monkeypatch.setattr("onboard.rollback.actions.run_command", fake_runner)
    path = temp_dir / "state.json"
    state = configured_state(project)
    state.dependencies = [{"category": "npm", "manager": "npm", "installed": ["typescript"]}]
    save(path, state)

    with pytest.raises(RollbackSafetyError):
        await run_rollback(path, phases=(RollbackPhase.DEPENDENCIES, RollbackPhase.CONFIG))

    assert fake_runner.calls == []
    assert (project / ".env.template").exists()


@pytest.mark.asyncio
async def test_missing_state(temp_dir):
    with pytest.raises(OnboardError) as exc:
        await run_rollback(temp_dir / "state.json")
    assert "onboard init" in exc.value.hint


@pytest.mark.asyncio
async def test_config_rollback_and_idempotence(temp_dir, project):
    path = temp_dir / "state.json"
    save(path, configured_state(project))

    report = await run_rollback(path)

    assert report.success
    assert [i.status for i in report.items] == [ItemStatus.DONE] * 3
    assert not (project / ".env.template").exists()
    assert (project / ".env").read_text() == "A=old\n"
    assert not (project / ".env.backup.20240101000000").exists()
    assert (project / ".gitignore").read_text() == "node_modules\n"

    state = InstallationStateStore(path).load()
    assert not state.installed
    assert fully_reversed(state)
    assert len(state.reversed["config"]) == 3

    again = await run_rollback(path)
    assert again.items == []
    assert all(phase.nothing_to_do for phase in again.phases)


@pytest.mark.asyncio
async def test_drifted_file_is_skipped_unless_forced(temp_dir, project):
    path = temp_dir / "state.json"
    save(path, configured_state(project))
    (project / ".env.template").write_text("A=edited by hand\n")

    report = await run_rollback(path, phases=(RollbackPhase.CONFIG,))

    skipped = report.skipped
    assert [i.target for i in skipped] == [str(project / ".env.template")]
    assert "--force" in skipped[0].reason
    assert (project / ".env.template").exists()
    state = InstallationStateStore(path).load()
    assert state.installed
    assert not state.is_reversed("config", str(project / ".env.template"))

    forced = await run_rollback(path, phases=(RollbackPhase.CONFIG,), force=True)
    assert [i.status for i in forced.items] == [ItemStatus.DONE]
    assert not (project / ".env.template").exists()
    assert not InstallationStateStore(path).load().installed


@pytest.mark.asyncio
async def test_dry_run_changes_nothing(temp_dir, project):
    path = temp_dir / "state.json"
    save(path, configured_state(project))
    before = path.read_text()

    report = await run_rollback(path, dry_run=True)

    assert report.dry_run
    assert [i.status for i in report.items] == [ItemStatus.PLANNED] * 3
    assert (project / ".env.template").exists()
    assert (project / ".env").read_text() == "A=new\n"
    assert path.read_text() == before


@pytest.mark.asyncio
async def test_failed_item_does_not_stop_others(temp_dir, project):
    path = temp_dir / "state.json"
    save(path, configured_state(project))
    (project / ".env.backup.20240101000000").unlink()

    report = await run_rollback(path, phases=(RollbackPhase.CONFIG,))

    assert not report.success
    assert [i.status for i in report.items] == [ItemStatus.DONE, ItemStatus.FAILED, ItemStatus.DONE]
    assert "Backup" in report.failures[0].reason
    assert InstallationStateStore(path).load().installed


@pytest.mark.asyncio
async def test_created_gitignore_is_removed_when_empty(temp_dir, project):
    gitignore = project / ".gitignore"
    gitignore.write_text(".env\n.onboard-state.json\n")
    state = InstallationState(installed=True)
    state.record_step(
        StepRecord(
            "configure",
            "completed",
            {"config": {"files": [], "gitignore": {
                "path": str(gitignore),
                "added": [".env", ".onboard-state.json"],
                "created": True,
            }}},
        )
    )
    path = temp_dir / "state.json"
    save(path, state)

    await run_rollback(path)

    assert not gitignore.exists()


@pytest.mark.asyncio
async def test_dependencies_uninstalled_with_unsafe(temp_dir, monkeypatch, fake_runner):
    fake_runner.on("npm list -g --depth=0 typescript", "/usr/lib\n`-- typescript@5.3.3\n")
    fake_runner.on("npm list -g --depth=0 eslint", "/usr/lib\n`-- (empty)\n")
    monkeypatch.setattr("onboard.rollback.actions.run_command", fake_runner)
    state = InstallationState(installed=True)
    state.dependencies = [
        {"category": "npm", "manager": "npm", "installed": ["typescript", "eslint"], "skipped": ["yarn"]},
        {"category": "system", "manager": "apt-get", "installed": [], "skipped": ["git"]},
    ]
    path = temp_dir / "state.json"
    save(path, state)

    report = await run_rollback(path, unsafe=True)

    statuses = {i.target: i.status for i in report.items}
    assert statuses == {"npm:typescript": ItemStatus.DONE, "npm:eslint": ItemStatus.SKIPPED}
    assert fake_runner.ran("npm uninstall -g typescript")
    assert not fake_runner.ran("npm uninstall -g eslint")
    assert not fake_runner.ran("npm uninstall -g yarn")


@pytest.mark.asyncio
async def test_depended_on_packages_are_skipped_unless_forced(temp_dir, monkeypatch, fake_runner):
    fake_runner.on("pip3 show requests", "Name: requests\nVersion: 2.31.0\nRequired-by: httpie, twine\n")
    fake_runner.on("pip3 show rich", "Name: rich\nVersion: 13.7.0\nRequired-by: \n")
    monkeypatch.setattr("onboard.rollback.actions.run_command", fake_runner)
    state = InstallationState(installed=True)
    state.dependencies = [{"category": "python", "manager": "pip3", "installed": ["requests", "rich"]}]
    path = temp_dir / "state.json"
    save(path, state)

    report = await run_rollback(path, unsafe=True)

    items = {i.target: i for i in report.items}
    assert items["python:rich"].status == ItemStatus.DONE
    assert items["python:requests"].status == ItemStatus.SKIPPED
    assert "required by 2 other package(s): httpie, twine" in items["python:requests"].reason
    assert "--force" in items["python:requests"].reason
    assert not fake_runner.ran("pip3 uninstall -y requests")

    forced = await run_rollback(path, unsafe=True, force=True)

    assert [(i.target, i.status) for i in forced.items] == [("python:requests", ItemStatus.DONE)]
    assert fake_runner.ran("pip3 uninstall -y requests")


@pytest.mark.asyncio
async def test_git_values_restored(temp_dir, monkeypatch, fake_runner):
    fake_runner.on("git config --global --get user.email", "dev@example.com")
    fake_runner.on("git config --global --get user.name", "Jane")
    monkeypatch.setattr("onboard.rollback.actions.run_command", fake_runner)
    monkeypatch.setattr("onboard.configgen.run_command", fake_runner)
    state = InstallationState(installed=True)
    state.record_step(
        StepRecord(
            "configure",
            "completed",
            {"git": {
                "values": {"user.email": "dev@example.com", "user.name": "Jane"},
                "original": {"user.email": None, "user.name": "Old Name"},
            }},
        )
    )
    path = temp_dir / "state.json"
    save(path, state)

    report = await run_rollback(path, phases=(RollbackPhase.GIT,))

    assert report.success
    assert fake_runner.ran("git config --global --unset user.email")
    assert fake_runner.ran("git config --global user.name 'Old Name'")


@pytest.mark.asyncio
async def test_docs_removed(temp_dir):
    docs = temp_dir / "docs"
    docs.mkdir()
    guide = docs / "SETUP.md"
    guide.write_text("# Setup\n")
    state = InstallationState(installed=True)
    state.record_step(
        StepRecord(
            "docs",
            "completed",
            {
                "files": [{"path": str(guide), "sha256": sha256_file(guide)}],
                "output_dir": str(docs),
                "created_dir": True,
            },
        )
    )
    path = temp_dir / "state.json"
    save(path, state)

    report = await run_rollback(path, phases=(RollbackPhase.DOCS,))

    assert report.success
    assert not docs.exists()
