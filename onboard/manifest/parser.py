"""Manifest parsing and validation."""

import logging
from typing import Any

import yaml

from onboard.errors import ManifestError, format_field_error
from onboard.verification.checks import build_checks

from .models import (
    CATEGORIES,
    DocumentationSpec,
    EnvironmentSpec,
    GitSpec,
    Manifest,
    SetupStep,
    SshSpec,
)

_logging = logging.getLogger(__name__)


def _string_list(value: Any, entity: str, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ManifestError(format_field_error(entity, field_name, "must be a list"))
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ManifestError(
                format_field_error(entity, field_name, "must contain only non-empty strings")
            )
    return tuple(item.strip() for item in value)


def _parse_environment(value: Any) -> EnvironmentSpec:
    if value is None:
        return EnvironmentSpec()
    if isinstance(value, list):
        return EnvironmentSpec(required=_string_list(value, "Manifest", "environment"))
    if not isinstance(value, dict):
        raise ManifestError(
            format_field_error("Manifest", "environment", "must be a list or a mapping")
        )
    defaults = value.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ManifestError(
            format_field_error("Manifest", "environment.defaults", "must be a mapping")
        )
    return EnvironmentSpec(
        required=_string_list(value.get("required") or [], "Manifest", "environment.required"),
        optional=_string_list(value.get("optional") or [], "Manifest", "environment.optional"),
        defaults={str(k): "" if v is None else str(v) for k, v in defaults.items()},
    )


def _parse_dependencies(value: Any) -> tuple[dict[str, tuple[str, ...]], Any]:
    """Return category package lists plus any nested environment block."""
    if value is None:
        return {}, None
    if not isinstance(value, dict):
        raise ManifestError(format_field_error("Manifest", "dependencies", "must be a mapping"))
    unknown = set(value) - set(CATEGORIES) - {"environment"}
    if unknown:
        allowed = ", ".join(CATEGORIES)
        raise ManifestError(
            format_field_error(
                "Manifest",
                "dependencies",
                f"has unknown categories {sorted(unknown)}; expected: {allowed}",
            )
        )
    categories = {}
    for category in CATEGORIES:
        if value.get(category) is None:
            continue
        packages = _string_list(value[category], "Manifest", f"dependencies.{category}")
        if packages:
            categories[category] = packages
    return categories, value.get("environment")


def _parse_setup_steps(value: Any) -> tuple[SetupStep, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ManifestError(format_field_error("Manifest", "setup_steps", "must be a list"))
    steps = []
    for index, raw in enumerate(value, start=1):
        entity = f"Setup step #{index}"
        if not isinstance(raw, dict):
            raise ManifestError(f"{entity} must be a mapping")
        for required in ("name", "command"):
            if not isinstance(raw.get(required), str) or not raw[required].strip():
                raise ManifestError(format_field_error(entity, required, "is required"))
        steps.append(
            SetupStep(
                id=index,
                name=raw["name"].strip(),
                command=raw["command"].strip(),
                description=str(raw.get("description") or ""),
            )
        )
    return tuple(steps)


def _parse_documentation(value: Any) -> DocumentationSpec:
    if value is None:
        return DocumentationSpec()
    if not isinstance(value, dict):
        raise ManifestError(format_field_error("Manifest", "documentation", "must be a mapping"))
    sections = value.get("sections") or []
    return DocumentationSpec(
        enabled=bool(value.get("enabled", True)),
        output_dir=str(value.get("output_dir") or "docs"),
        sections=_string_list(sections, "Manifest", "documentation.sections"),
        custom=dict(value.get("custom") or {}),
    )


def _parse_ssh(value: Any) -> SshSpec:
    if value is None:
        return SshSpec()
    if not isinstance(value, dict):
        raise ManifestError(format_field_error("Manifest", "ssh", "must be a mapping"))
    return SshSpec(
        generate=bool(value.get("generate", False)),
        key_path=str(value.get("key_path") or SshSpec.key_path),
        comment=value.get("comment"),
    )


def _parse_git(value: Any) -> GitSpec:
    if value is None:
        return GitSpec()
    if not isinstance(value, dict):
        raise ManifestError(format_field_error("Manifest", "git", "must be a mapping"))
    return GitSpec(
        configure=bool(value.get("configure", False)),
        user_name=value.get("user_name"),
        user_email=value.get("user_email"),
        default_branch=value.get("default_branch"),
    )


def parse_manifest_dict(data: Any) -> Manifest:
    """Validate a manifest mapping and build a ``Manifest``.

    Raises:
        ManifestError: If any field is missing or malformed
    """
    if not isinstance(data, dict):
        raise ManifestError("Manifest must be a YAML mapping")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(format_field_error("Manifest", "name", "is required"))

    dependencies, nested_env = _parse_dependencies(data.get("dependencies"))
    env_source = data.get("environment")
    if env_source is None:
        env_source = nested_env

    verification = data.get("verification") or {}
    if not isinstance(verification, dict):
        raise ManifestError(format_field_error("Manifest", "verification", "must be a mapping"))
    raw_checks = verification.get("checks") or []
    if not isinstance(raw_checks, list):
        raise ManifestError(
            format_field_error("Manifest", "verification.checks", "must be a list")
        )

    manifest = Manifest(
        name=name.strip(),
        description=str(data.get("description") or ""),
        dependencies=dependencies,
        environment=_parse_environment(env_source),
        setup_steps=_parse_setup_steps(data.get("setup_steps")),
        checks=tuple(build_checks(raw_checks)),
        documentation=_parse_documentation(data.get("documentation")),
        ssh=_parse_ssh(data.get("ssh")),
        git=_parse_git(data.get("git")),
        raw=data,
    )
    _logging.debug(
        f"Parsed manifest '{manifest.name}': {len(manifest.setup_steps)} steps, "
        f"{len(manifest.checks)} checks"
    )
    return manifest


def parse_manifest(content: str) -> Manifest:
    """Parse manifest YAML content.

    Raises:
        ManifestError: If the content is not valid YAML or fails validation
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ManifestError(f"Manifest is not valid YAML: {e}") from e
    return parse_manifest_dict(data)


__all__ = ["parse_manifest", "parse_manifest_dict"]
