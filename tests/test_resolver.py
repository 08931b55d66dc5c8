"""Tests for repository references and manifest resolution."""

import base64

import pytest

from onboard.errors import (
    InvalidRepositoryReference,
    ManifestError,
    RemoteFetchError,
    ToolUnavailableError,
)
from onboard.manifest import (
    ManifestCache,
    ManifestResolver,
    RemoteFetcher,
    RepositoryRef,
    parse_repository_reference,
)


class StubFetcher:
    def __init__(self, files=None, helpers=("gh",), branch="main"):
        self.files = files or {}
        self.helpers = helpers
        self.branch = branch
        self.fetched = []
        self.detected = 0

    def detect_helpers(self):
        self.detected += 1
        return self.helpers

    async def default_branch(self, ref, helper):
        return self.branch

    async def fetch(self, ref, filename, branch, helper):
        self.fetched.append((filename, branch))
        return self.files.get(filename)


class NoNetworkFetcher(StubFetcher):
    def detect_helpers(self):
        raise AssertionError("network should not be touched")


@pytest.mark.parametrize(
    "reference,expected",
    [
        ("https://github.com/acme/widgets", ("github.com", "acme", "widgets")),
        ("https://github.com/acme/widgets.git", ("github.com", "acme", "widgets")),
        ("https://github.com/acme/widgets/", ("github.com", "acme", "widgets")),
        ("git@github.com:acme/widgets.git", ("github.com", "acme", "widgets")),
        ("git@gitlab.example.com:team/my.repo.git", ("gitlab.example.com", "team", "my.repo")),
        ("https://git.example.com:8443/a-b/c_d", ("git.example.com:8443", "a-b", "c_d")),
        ("  https://GitHub.com/acme/widgets  ", ("github.com", "acme", "widgets")),
    ],
)
def test_parse_repository_reference(reference, expected):
    ref = parse_repository_reference(reference)
    assert (ref.host, ref.owner, ref.repo) == expected


@pytest.mark.parametrize(
    "reference",
    [
        "",
        "acme/widgets",
        "github.com/acme/widgets",
        "https://github.com/acme",
        "https://github.com/acme/widgets/tree/main",
        "ftp://github.com/acme/widgets",
        "git@github.com/acme/widgets.git",
        "https://github.com/../widgets",
    ],
)
def test_parse_repository_reference_rejects(reference):
    with pytest.raises(InvalidRepositoryReference) as exc:
        parse_repository_reference(reference)
    assert "https://<host>/<owner>/<repo>" in exc.value.message
    assert "<user>@<host>:<owner>/<repo>.git" in exc.value.message


def test_repository_ref_str():
    ref = RepositoryRef("github.com", "acme", "widgets")
    assert ref.slug == "acme/widgets"
    assert str(ref) == "github.com/acme/widgets"


@pytest.mark.asyncio
async def test_resolve_uses_fresh_cache(temp_dir, sample_manifest):
    cache = ManifestCache(temp_dir)
    cache.write("acme", "widgets", sample_manifest)
    resolver = ManifestResolver(cache, NoNetworkFetcher())

    resolved = await resolver.resolve("https://github.com/acme/widgets.git")

    assert resolved.source == "cache"
    assert resolved.manifest.name == "widgets"
    assert resolved.content == sample_manifest


@pytest.mark.asyncio
async def test_resolve_fetches_first_matching_candidate(temp_dir, sample_manifest):
    cache = ManifestCache(temp_dir)
    fetcher = StubFetcher({".onboard.yml": sample_manifest}, branch="develop")
    resolver = ManifestResolver(cache, fetcher)

    resolved = await resolver.resolve("git@github.com:acme/widgets.git")

    assert resolved.source == "remote"
    assert resolved.filename == ".onboard.yml"
    assert fetcher.fetched == [(".onboard.yaml", "develop"), (".onboard.yml", "develop")]
    assert cache.read("acme", "widgets") == sample_manifest


@pytest.mark.asyncio
async def test_resolve_no_cache_bypasses_fresh_entry(temp_dir, sample_manifest):
    cache = ManifestCache(temp_dir)
    cache.write("acme", "widgets", "name: old\n")
    fetcher = StubFetcher({".onboard.yaml": sample_manifest})
    resolver = ManifestResolver(cache, fetcher)

    resolved = await resolver.resolve("https://github.com/acme/widgets", no_cache=True)

    assert resolved.source == "remote"
    assert resolved.manifest.name == "widgets"
    assert cache.read("acme", "widgets") == sample_manifest


@pytest.mark.asyncio
async def test_resolve_explicit_branch(temp_dir, sample_manifest):
    fetcher = StubFetcher({".onboard.yaml": sample_manifest}, branch="main")
    resolver = ManifestResolver(ManifestCache(temp_dir), fetcher)

    await resolver.resolve("https://github.com/acme/widgets", branch="release")

    assert fetcher.fetched == [(".onboard.yaml", "release")]


@pytest.mark.asyncio
async def test_resolve_falls_back_to_stale_cache(temp_dir, sample_manifest):
    cache = ManifestCache(temp_dir, ttl=0)
    cache.write("acme", "widgets", sample_manifest)
    resolver = ManifestResolver(cache, StubFetcher())

    resolved = await resolver.resolve("https://github.com/acme/widgets")

    assert resolved.source == "stale-cache"
    assert resolved.manifest.name == "widgets"


@pytest.mark.asyncio
async def test_resolve_raises_when_nothing_found(temp_dir):
    fetcher = StubFetcher()
    resolver = ManifestResolver(ManifestCache(temp_dir), fetcher)

    with pytest.raises(RemoteFetchError) as exc:
        await resolver.resolve("https://github.com/acme/widgets")

    assert "acme/widgets@main" in exc.value.message
    assert exc.value.hint
    assert len(fetcher.fetched) == 3


@pytest.mark.asyncio
async def test_resolve_invalid_remote_manifest_is_not_cached(temp_dir):
    cache = ManifestCache(temp_dir)
    resolver = ManifestResolver(cache, StubFetcher({".onboard.yaml": "description: no name\n"}))

    with pytest.raises(ManifestError):
        await resolver.resolve("https://github.com/acme/widgets")

    assert cache.read("acme", "widgets") is None


@pytest.mark.asyncio
async def test_resolve_ignores_invalid_cached_manifest(temp_dir, sample_manifest):
    cache = ManifestCache(temp_dir)
    cache.write("acme", "widgets", "name: [unclosed\n")
    resolver = ManifestResolver(cache, StubFetcher({".onboard.yaml": sample_manifest}))

    resolved = await resolver.resolve("https://github.com/acme/widgets")

    assert resolved.source == "remote"


@pytest.mark.asyncio
async def test_resolve_rejects_bad_reference_before_network(temp_dir):
    resolver = ManifestResolver(ManifestCache(temp_dir), NoNetworkFetcher())
    with pytest.raises(InvalidRepositoryReference):
        await resolver.resolve("not a repo")


def test_detect_helpers_lists_gh_first(monkeypatch):
    monkeypatch.setattr("onboard.manifest.resolver.shutil.which", lambda name: f"/usr/bin/{name}")
    assert RemoteFetcher().detect_helpers() == ("gh", "curl")


def test_detect_helpers_without_gh(monkeypatch):
    monkeypatch.setattr(
        "onboard.manifest.resolver.shutil.which",
        lambda name: "/usr/bin/curl" if name == "curl" else None,
    )
    assert RemoteFetcher().detect_helpers() == ("curl",)


def test_detect_helpers_missing(monkeypatch):
    monkeypatch.setattr("onboard.manifest.resolver.shutil.which", lambda name: None)
    with pytest.raises(ToolUnavailableError):
        RemoteFetcher().detect_helpers()


def test_raw_url():
    fetcher = RemoteFetcher()
    github = RepositoryRef("github.com", "acme", "widgets")
    other = RepositoryRef("git.example.com", "acme", "widgets")
    assert (
        fetcher.raw_url(github, ".onboard.yaml", "main")
        == "https://raw.githubusercontent.com/acme/widgets/main/.onboard.yaml"
    )
    assert (
        fetcher.raw_url(other, ".onboard.yaml", "dev")
        == "https://git.example.com/acme/widgets/raw/dev/.onboard.yaml"
    )


@pytest.mark.asyncio
async def test_fetch_gh_decodes_content(monkeypatch, fake_runner):
    encoded = base64.b64encode(b"name: widgets\n").decode()
    fake_runner.on("gh api", encoded)
    monkeypatch.setattr("onboard.manifest.resolver.run_command", fake_runner)
    ref = RepositoryRef("github.com", "acme", "widgets")

    content = await RemoteFetcher().fetch(ref, ".onboard.yaml", "main", "gh")

    assert content == "name: widgets\n"
    assert "repos/acme/widgets/contents/.onboard.yaml?ref=main" in fake_runner.calls[0]
    assert "--hostname" not in fake_runner.calls[0]


@pytest.mark.asyncio
async def test_fetch_gh_missing_file(monkeypatch, fake_runner):
    fake_runner.on("gh api", "Not Found", returncode=1)
    monkeypatch.setattr("onboard.manifest.resolver.run_command", fake_runner)
    ref = RepositoryRef("git.example.com", "acme", "widgets")

    assert await RemoteFetcher().fetch(ref, ".onboard.yaml", "main", "gh") is None
    assert "--hostname git.example.com" in fake_runner.calls[0]


@pytest.mark.asyncio
async def test_fetch_curl(monkeypatch, fake_runner):
    fake_runner.on("curl", "name: widgets\n")
    monkeypatch.setattr("onboard.manifest.resolver.run_command", fake_runner)
    ref = RepositoryRef("github.com", "acme", "widgets")

    content = await RemoteFetcher().fetch(ref, ".onboard.yaml", "main", "curl")

    assert content == "name: widgets\n"
    assert fake_runner.calls[0].startswith("curl -s -f -L")


@pytest.mark.asyncio
async def test_default_branch(monkeypatch, fake_runner):
    fake_runner.on("gh repo view", "trunk\n")
    monkeypatch.setattr("onboard.manifest.resolver.run_command", fake_runner)
    ref = RepositoryRef("github.com", "acme", "widgets")
    fetcher = RemoteFetcher()

    assert await fetcher.default_branch(ref, "gh") == "trunk"
    assert await fetcher.default_branch(ref, "curl") == "main"


@pytest.mark.asyncio
async def test_default_branch_falls_back(monkeypatch, fake_runner):
    fake_runner.on("gh repo view", "error", returncode=1)
    monkeypatch.setattr("onboard.manifest.resolver.run_command", fake_runner)
    ref = RepositoryRef("github.com", "acme", "widgets")

    assert await RemoteFetcher().default_branch(ref, "gh") == "main"


@pytest.mark.asyncio
async def test_curl_is_tried_when_gh_fails(monkeypatch, fake_runner, temp_dir):
    monkeypatch.setattr("onboard.manifest.resolver.shutil.which", lambda name: f"/usr/bin/{name}")
    fake_runner.on("gh", "gh: To get started with GitHub CLI, please run: gh auth login", returncode=1)
    fake_runner.on("curl", "name: widgets\n")
    monkeypatch.setattr("onboard.manifest.resolver.run_command", fake_runner)
    resolver = ManifestResolver(ManifestCache(temp_dir))

    resolved = await resolver.resolve("https://github.com/acme/widgets", no_cache=True)

    assert resolved.manifest.name == "widgets"
    assert resolved.source == "remote"
    assert resolved.filename == ".onboard.yaml"
    assert [c.split()[0] for c in fake_runner.calls] == ["gh", "gh", "gh", "gh", "curl"]
    assert "raw.githubusercontent.com/acme/widgets/main/.onboard.yaml" in fake_runner.calls[-1]
