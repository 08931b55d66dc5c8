"""Data models for setup manifests and repository references."""

from dataclasses import dataclass, field
from typing import Any

from onboard.verification.checks import Check

CATEGORIES = ("system", "npm", "python")
CANDIDATE_FILENAMES = (".onboard.yaml", ".onboard.yml", "onboard.yaml")


@dataclass(frozen=True)
class RepositoryRef:
    host: str
    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.host}/{self.slug}"


@dataclass(frozen=True)
class EnvironmentSpec:
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    defaults: dict[str, str] = field(default_factory=dict)

    @property
    def variables(self) -> tuple[str, ...]:
        return self.required + tuple(v for v in self.optional if v not in self.required)


@dataclass(frozen=True)
class SetupStep:
    id: int
    name: str
    command: str
    description: str = ""


@dataclass(frozen=True)
class SshSpec:
    generate: bool = False
    key_path: str = "~/.ssh/id_ed25519"
    comment: str | None = None


@dataclass(frozen=True)
class GitSpec:
    configure: bool = False
    user_name: str | None = None
    user_email: str | None = None
    default_branch: str | None = None

    def values(self) -> dict[str, str]:
        pairs = {
            "user.name": self.user_name,
            "user.email": self.user_email,
            "init.defaultBranch": self.default_branch,
        }
        return {k: v for k, v in pairs.items() if v}


@dataclass(frozen=True)
class DocumentationSpec:
    enabled: bool = True
    output_dir: str = "docs"
    sections: tuple[str, ...] = ()
    custom: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Manifest:
    """A parsed setup manifest, immutable for the duration of a run.

    ``raw`` keeps the validated source mapping so the manifest can be
    snapshotted into the installation state and parsed again later.
    """
    name: str
    description: str = ""
    dependencies: dict[str, tuple[str, ...]] = field(default_factory=dict)
    environment: EnvironmentSpec = field(default_factory=EnvironmentSpec)
    setup_steps: tuple[SetupStep, ...] = ()
    checks: tuple[Check, ...] = ()
    documentation: DocumentationSpec = field(default_factory=DocumentationSpec)
    ssh: SshSpec = field(default_factory=SshSpec)
    git: GitSpec = field(default_factory=GitSpec)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def packages(self, category: str) -> tuple[str, ...]:
        return self.dependencies.get(category, ())

    @property
    def has_dependencies(self) -> bool:
        return any(self.dependencies.get(c) for c in CATEGORIES)


@dataclass(frozen=True)
class ResolvedManifest:
    ref: RepositoryRef
    manifest: Manifest
    content: str
    source: str
    filename: str | None = None


__all__ = [
    "CATEGORIES",
    "CANDIDATE_FILENAMES",
    "RepositoryRef",
    "EnvironmentSpec",
    "SetupStep",
    "SshSpec",
    "GitSpec",
    "DocumentationSpec",
    "Manifest",
    "ResolvedManifest",
]
