"""Resolve a repository reference into a parsed setup manifest."""

import base64
import binascii
import logging
import re
import shlex
import shutil

from onboard.errors import (
    InvalidRepositoryReference,
    ManifestError,
    RemoteFetchError,
    ToolUnavailableError,
)
from onboard.execution import QUERY_TIMEOUT, run_command

from .cache import ManifestCache
from .models import CANDIDATE_FILENAMES, RepositoryRef, ResolvedManifest
from .parser import parse_manifest

FETCH_TIMEOUT = 30
FALLBACK_BRANCH = "main"

_HTTPS_PATTERN = re.compile(
    r"^https?://(?P<host>[A-Za-z0-9.-]+(?::\d+)?)/(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$"
)
_SSH_PATTERN = re.compile(
    r"^[\w.-]+@(?P<host>[A-Za-z0-9.-]+):(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?$"
)

_logging = logging.getLogger(__name__)


def parse_repository_reference(reference: str) -> RepositoryRef:
    """Parse an HTTPS or SSH-shorthand repository reference.

    Examples:
        >>> parse_repository_reference("https://github.com/acme/widgets.git")
        RepositoryRef(host='github.com', owner='acme', repo='widgets')
        >>> parse_repository_reference("git@github.com:acme/widgets.git").slug
        'acme/widgets'

    Raises:
        InvalidRepositoryReference: If the reference matches neither form
    """
    if not isinstance(reference, str):
        raise InvalidRepositoryReference(repr(reference))
    candidate = reference.strip()
    match = _HTTPS_PATTERN.match(candidate) or _SSH_PATTERN.match(candidate)
    if not match:
        raise InvalidRepositoryReference(reference)
    owner, repo = match.group("owner"), match.group("repo")
    if owner in (".", "..") or repo in (".", "..") or not repo:
        raise InvalidRepositoryReference(reference)
    return RepositoryRef(host=match.group("host").lower(), owner=owner, repo=repo)


class RemoteFetcher:
    """Fetches manifest files through the ``gh`` CLI and ``curl``.

    Every available helper is tried in ``HELPERS`` order, so an
    unauthenticated ``gh`` still falls back to the raw file URL.
    """

    HELPERS = ("gh", "curl")

    def detect_helpers(self) -> tuple[str, ...]:
        helpers = tuple(h for h in self.HELPERS if shutil.which(h))
        if helpers:
            _logging.debug(f"Remote access helpers: {', '.join(helpers)}")
            return helpers
        raise ToolUnavailableError(
            "Neither 'gh' nor 'curl' is available for fetching remote manifests",
            hint="install the GitHub CLI from https://cli.github.com",
        )

    def _gh_host_flag(self, ref: RepositoryRef) -> str:
        if ref.host == "github.com":
            return ""
        return f" --hostname {shlex.quote(ref.host)}"

    async def default_branch(self, ref: RepositoryRef, helper: str) -> str:
        if helper != "gh":
            return FALLBACK_BRANCH
        command = (
            f"gh repo view {shlex.quote(f'{ref.host}/{ref.slug}')} "
            "--json defaultBranchRef --jq .defaultBranchRef.name"
        )
        outcome = await run_command(command, timeout=QUERY_TIMEOUT)
        branch = outcome.output.strip() if outcome.ok else ""
        if not branch:
            _logging.debug(f"Could not determine default branch for {ref.slug}, using '{FALLBACK_BRANCH}'")
            return FALLBACK_BRANCH
        return branch.splitlines()[0]

    async def fetch(
        self, ref: RepositoryRef, filename: str, branch: str, helper: str
    ) -> str | None:
        """Return file content, or ``None`` when the file does not resolve."""
        if helper == "gh":
            return await self._fetch_gh(ref, filename, branch)
        return await self._fetch_curl(ref, filename, branch)

    async def _fetch_gh(self, ref: RepositoryRef, filename: str, branch: str) -> str | None:
        endpoint = f"repos/{ref.slug}/contents/{filename}?ref={branch}"
        command = (
            f"gh api{self._gh_host_flag(ref)} {shlex.quote(endpoint)} --jq .content"
        )
        outcome = await run_command(command, timeout=FETCH_TIMEOUT)
        if not outcome.ok or not outcome.output:
            _logging.debug(f"gh could not fetch {filename} from {ref.slug}: {outcome.output}")
            return None
        try:
            return base64.b64decode(outcome.output).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            _logging.debug(f"Undecodable content for {filename} from {ref.slug}: {e}")
            return None

    def raw_url(self, ref: RepositoryRef, filename: str, branch: str) -> str:
        if ref.host == "github.com":
            return f"https://raw.githubusercontent.com/{ref.slug}/{branch}/{filename}"
        return f"https://{ref.host}/{ref.slug}/raw/{branch}/{filename}"

    async def _fetch_curl(self, ref: RepositoryRef, filename: str, branch: str) -> str | None:
        url = self.raw_url(ref, filename, branch)
        outcome = await run_command(f"curl -s -f -L {shlex.quote(url)}", timeout=FETCH_TIMEOUT)
        if not outcome.ok or not outcome.output:
            _logging.debug(f"curl could not fetch {url}")
            return None
        return outcome.output


class ManifestResolver:
    """Turns a repository reference into a parsed manifest.

    A fresh cache entry short-circuits the network unless ``no_cache`` is
    given. Remote content is cached under (owner, repo) regardless of
    which candidate filename matched.
    """

    def __init__(self, cache: ManifestCache, fetcher: RemoteFetcher | None = None):
        self.cache = cache
        self.fetcher = fetcher or RemoteFetcher()

    async def resolve(
        self, reference: str, no_cache: bool = False, branch: str | None = None
    ) -> ResolvedManifest:
        ref = parse_repository_reference(reference)

        if not no_cache:
            cached = self.cache.read(ref.owner, ref.repo)
            if cached is not None:
                try:
                    manifest = parse_manifest(cached)
                    _logging.debug(f"Manifest for {ref.slug} served from cache")
                    return ResolvedManifest(ref, manifest, cached, source="cache")
                except ManifestError as e:
                    _logging.warning(f"Ignoring invalid cached manifest for {ref.slug}: {e}")

        helpers = self.fetcher.detect_helpers()
        branch = branch or await self.fetcher.default_branch(ref, helpers[0])

        for helper in helpers:
            for filename in CANDIDATE_FILENAMES:
                content = await self.fetcher.fetch(ref, filename, branch, helper)
                if content is None:
                    continue
                manifest = parse_manifest(content)
                self.cache.write(ref.owner, ref.repo, content)
                _logging.debug(f"Fetched {filename} from {ref.slug} via {helper}")
                return ResolvedManifest(ref, manifest, content, source="remote", filename=filename)
            _logging.debug(f"No manifest for {ref.slug} via {helper}")

        stale = self.cache.read(ref.owner, ref.repo, ignore_ttl=True)
        if stale is not None:
            _logging.warning(f"Remote fetch failed for {ref.slug}; using expired cached manifest")
            return ResolvedManifest(ref, parse_manifest(stale), stale, source="stale-cache")

        tried = ", ".join(CANDIDATE_FILENAMES)
        raise RemoteFetchError(
            f"No manifest found in {ref.slug}@{branch} (tried {tried})",
            hint="check the repository reference and branch, or that you have access to it",
        )


__all__ = [
    "FALLBACK_BRANCH",
    "parse_repository_reference",
    "RemoteFetcher",
    "ManifestResolver",
]
