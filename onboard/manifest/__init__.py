"""Manifest models, parsing, caching and resolution."""

from .cache import CacheStats, ManifestCache
from .models import (
    CANDIDATE_FILENAMES,
    CATEGORIES,
    DocumentationSpec,
    EnvironmentSpec,
    GitSpec,
    Manifest,
    RepositoryRef,
    ResolvedManifest,
    SetupStep,
    SshSpec,
)
from .parser import parse_manifest, parse_manifest_dict
from .resolver import ManifestResolver, RemoteFetcher, parse_repository_reference

__all__ = [
    "CacheStats",
    "ManifestCache",
    "CANDIDATE_FILENAMES",
    "CATEGORIES",
    "DocumentationSpec",
    "EnvironmentSpec",
    "GitSpec",
    "Manifest",
    "RepositoryRef",
    "ResolvedManifest",
    "SetupStep",
    "SshSpec",
    "parse_manifest",
    "parse_manifest_dict",
    "ManifestResolver",
    "RemoteFetcher",
    "parse_repository_reference",
]
