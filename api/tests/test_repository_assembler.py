"""Tests for enhanced repository assembly."""

import asyncio
import json

import pytest

from stackfolio.adapters.ttl_cache import CacheKeyError, TTLCache
from stackfolio.models.deployment import DeploymentLinks, MatchResult
from stackfolio.models.package import NpmPackageInfo
from stackfolio.models.repository import CICDStatus, EnhancedRepositoryOptions
from stackfolio.models.result import FailureKind, FetchResult
from stackfolio.services.repository_assembler import (
    RepositoryAssembler,
    base_fields,
    cicd_status_from_runs,
    repo_owner,
)

REPO = {
    "id": 101,
    "name": "widgets",
    "full_name": "acme/widgets",
    "owner": {"login": "acme"},
    "description": "Widget factory",
    "html_url": "https://github.com/acme/widgets",
    "homepage": "",
    "language": "TypeScript",
    "topics": ["ui"],
    "visibility": "public",
    "default_branch": "main",
    "stargazers_count": 12,
    "license": {"spdx_id": "MIT"},
    "has_pages": True,
}

RUN = {
    "id": 9001,
    "name": "CI",
    "status": "completed",
    "conclusion": "success",
    "event": "push",
    "head_branch": "main",
    "head_sha": "abc123",
    "run_number": 42,
    "html_url": "https://github.com/acme/widgets/actions/runs/9001",
    "created_at": "2026-01-01T00:00:00Z",
    "updated_at": "2026-01-01T00:05:00Z",
    "run_attempt": 1,
}

MANIFEST = json.dumps({"name": "@acme/widgets", "version": "1.0.0"})
RELEASE_WORKFLOW = "jobs:\n  publish:\n    steps:\n      - run: npm publish\n"


def _not_found() -> FetchResult:
    return FetchResult.failure(FailureKind.NOT_FOUND, "missing", 404)


class FakeGitHub:
    username = "acme"

    def __init__(self, repo=REPO, files=None, failures=None, runs=None, listing=None) -> None:
        self.repo = repo
        self.files = {"package.json": MANIFEST} if files is None else files
        self.failures = failures or {}
        self.runs = [RUN] if runs is None else runs
        self.listing = listing
        self.calls: list[str] = []

    def _result(self, method: str, value) -> FetchResult:
        self.calls.append(method)
        if method in self.failures:
            return self.failures[method]
        return FetchResult.success(value)

    async def get_repo_metadata(self, owner, name):
        self.calls.append("get_repo_metadata")
        if self.repo is None:
            return _not_found()
        return FetchResult.success(self.repo)

    async def list_repositories(self, visibility="public"):
        return self._result("list_repositories", self.listing if self.listing is not None else [self.repo])

    async def get_readme(self, owner, name):
        return self._result("get_readme", "# Widgets")

    async def get_languages(self, owner, name):
        return self._result("get_languages", {"TypeScript": 9000, "CSS": 120})

    async def get_commit_activity(self, owner, name):
        return self._result("get_commit_activity", [{"total": 3, "week": 1700000000, "days": [0, 1, 2, 0, 0, 0, 0]}])

    async def get_contributor_stats(self, owner, name):
        return self._result("get_contributor_stats", [{"total": 5, "author": {"login": "acme"}}])

    async def get_code_frequency(self, owner, name):
        return self._result("get_code_frequency", [[1700000000, 120, -40]])

    async def get_participation(self, owner, name):
        return self._result("get_participation", {"all": [1, 2], "owner": [1, 0]})

    async def get_releases(self, owner, name, limit=10):
        return self._result("get_releases", [{"tag_name": "v1.0.0"}])

    async def get_workflows(self, owner, name):
        return self._result("get_workflows", [{"id": 1, "name": "CI"}])

    async def get_workflow_runs(self, owner, name, limit=10):
        return self._result(f"get_workflow_runs:{limit}", self.runs[:limit])

    async def get_deployments(self, owner, name, limit=10):
        return self._result("get_deployments", [{"id": 5, "environment": "production"}])

    async def get_file_content(self, owner, name, path):
        self.calls.append(f"get_file_content:{path}")
        if path in self.failures:
            return self.failures[path]
        if path not in self.files:
            return _not_found()
        return FetchResult.success(self.files[path])

    async def get_contents(self, owner, name, path=""):
        self.calls.append(f"get_contents:{path}")
        prefix = f"{path}/"
        entries = [
            {"name": key[len(prefix):], "path": key, "type": "file"}
            for key in self.files
            if key.startswith(prefix)
        ]
        return FetchResult.success(entries) if entries else _not_found()


class FakeNpm:
    def __init__(self, result=None) -> None:
        self.result = result
        self.names: list[str] = []

    async def get_package_info(self, name):
        self.names.append(name)
        if self.result is not None:
            return self.result
        return FetchResult.success(
            NpmPackageInfo(name=name, version="1.0.0", npm_link=f"https://www.npmjs.com/package/{name}")
        )


class FakeLinks:
    def __init__(self, links=None, error: Exception = None) -> None:
        self.links = links
        self.error = error
        self.calls = 0

    async def find_links(self, owner, name):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.links


NETLIFY_LINK = DeploymentLinks(netlify=MatchResult(name="widgets", url="https://widgets.netlify.app"))


def _assembler(github=None, npm=None, links=None, cache=None, max_concurrency=4) -> RepositoryAssembler:
    return RepositoryAssembler(
        github or FakeGitHub(),
        npm or FakeNpm(),
        links or FakeLinks(NETLIFY_LINK),
        cache=cache,
        max_concurrency=max_concurrency,
    )


@pytest.mark.asyncio
async def test_assemble_merges_every_sub_resource() -> None:
    record = await _assembler().assemble("acme", "widgets")

    assert record.full_name == "acme/widgets"
    assert record.homepage is None
    assert record.license == "MIT"
    assert record.pages == "https://acme.github.io/widgets"
    assert record.readme == "# Widgets"
    assert record.languages == {"TypeScript": 9000, "CSS": 120}
    assert record.stats.code_frequency == [[1700000000, 120, -40]]
    assert record.releases == [{"tag_name": "v1.0.0"}]
    assert record.workflows == [{"id": 1, "name": "CI"}]
    assert record.workflow_runs == [RUN]
    assert record.cicd_status.conclusion == "success"
    assert record.deployments == [{"id": 5, "environment": "production"}]
    assert record.npm.published is True
    assert record.npm.package_name == "@acme/widgets"
    assert record.deployment_links == NETLIFY_LINK


@pytest.mark.asyncio
async def test_base_failure_stops_before_sub_resources() -> None:
    github = FakeGitHub(repo=None)
    links = FakeLinks(NETLIFY_LINK)

    record = await _assembler(github=github, links=links).assemble("acme", "missing")

    assert record is None
    assert github.calls == ["get_repo_metadata"]
    assert links.calls == 0


@pytest.mark.asyncio
async def test_failed_sub_resource_is_null_and_siblings_survive() -> None:
    github = FakeGitHub(
        failures={
            "get_readme": _not_found(),
            "get_languages": FetchResult.failure(FailureKind.RATE_LIMITED, "slow down", 403),
            "get_deployments": FetchResult.failure(FailureKind.TRANSPORT_ERROR, "timeout"),
        }
    )
    links = FakeLinks(error=RuntimeError("platform listing exploded"))

    record = await _assembler(github=github, links=links).assemble("acme", "widgets")

    assert record.readme is None
    assert record.languages is None
    assert record.deployments is None
    assert record.deployment_links is None
    assert record.releases == [{"tag_name": "v1.0.0"}]
    assert record.cicd_status is not None


@pytest.mark.asyncio
async def test_unexpected_sub_resource_shape_is_null_and_siblings_survive() -> None:
    github = FakeGitHub(
        failures={
            "get_languages": FetchResult.success(["TypeScript"]),
            "get_releases": FetchResult.success({"tag_name": "v1.0.0"}),
        }
    )

    record = await _assembler(github=github).assemble("acme", "widgets")

    assert record.languages is None
    assert record.releases is None
    assert record.readme is not None
    assert record.deployment_links == NETLIFY_LINK


@pytest.mark.asyncio
async def test_cache_key_errors_are_not_swallowed() -> None:
    links = FakeLinks(error=CacheKeyError("bad key"))
    with pytest.raises(CacheKeyError):
        await _assembler(links=links).assemble("acme", "widgets")


@pytest.mark.asyncio
async def test_disabled_options_issue_no_requests() -> None:
    github = FakeGitHub()
    npm = FakeNpm()
    links = FakeLinks(NETLIFY_LINK)
    options = EnhancedRepositoryOptions(
        include_readme=False,
        include_stats=False,
        include_workflows=False,
        include_npm=False,
        include_deployment_links=False,
    )

    record = await _assembler(github=github, npm=npm, links=links).assemble("acme", "widgets", options)

    assert record.readme is None
    assert record.stats is None
    assert record.workflows is None
    assert record.npm is None
    assert record.languages is not None
    assert "get_readme" not in github.calls
    assert "get_commit_activity" not in github.calls
    assert "get_workflows" not in github.calls
    assert npm.names == []
    assert links.calls == 0


@pytest.mark.asyncio
async def test_cicd_status_requests_only_latest_run() -> None:
    github = FakeGitHub()
    options = EnhancedRepositoryOptions(include_workflows=False)

    record = await _assembler(github=github).assemble("acme", "widgets", options)

    assert "get_workflow_runs:1" in github.calls
    assert record.cicd_status == CICDStatus(**{key: RUN[key] for key in CICDStatus.model_fields})


@pytest.mark.asyncio
async def test_cicd_status_is_null_when_no_runs_exist() -> None:
    record = await _assembler(github=FakeGitHub(runs=[])).assemble("acme", "widgets")
    assert record.cicd_status is None
    assert record.workflow_runs == []


def test_cicd_status_from_runs() -> None:
    assert cicd_status_from_runs(None) is None
    assert cicd_status_from_runs([]) is None
    status = cicd_status_from_runs([RUN, {"id": 1}])
    assert status.id == 9001
    assert not hasattr(status, "run_attempt")


@pytest.mark.asyncio
async def test_stats_null_only_when_every_stats_call_fails() -> None:
    failures = {
        "get_commit_activity": _not_found(),
        "get_contributor_stats": _not_found(),
        "get_code_frequency": _not_found(),
    }
    partial = await _assembler(github=FakeGitHub(failures=failures)).assemble("acme", "widgets")
    assert partial.stats.participation == {"all": [1, 2], "owner": [1, 0]}
    assert partial.stats.contributors is None

    failures["get_participation"] = _not_found()
    empty = await _assembler(github=FakeGitHub(failures=failures)).assemble("acme", "widgets")
    assert empty.stats is None


@pytest.mark.asyncio
async def test_npm_status_detects_publish_workflows() -> None:
    github = FakeGitHub(
        files={
            "package.json": MANIFEST,
            ".github/workflows/release.yml": RELEASE_WORKFLOW,
            ".github/workflows/ci.yml": "jobs:\n  test:\n    steps:\n      - run: npm test\n",
            ".github/workflows/notes.md": "npm publish",
        }
    )

    result = await _assembler(github=github).npm_status("acme", "widgets")

    assert result.ok
    assert result.value.has_publish_workflow is True
    assert result.value.publish_workflows == [".github/workflows/release.yml"]


@pytest.mark.asyncio
async def test_npm_status_not_applicable_cases() -> None:
    no_manifest = await _assembler(github=FakeGitHub(files={})).npm_status("acme", "widgets")
    invalid = await _assembler(github=FakeGitHub(files={"package.json": "{oops"})).npm_status("acme", "widgets")
    nameless = await _assembler(github=FakeGitHub(files={"package.json": '{"private": true}'})).npm_status(
        "acme", "widgets"
    )

    assert no_manifest.value.applicable is False
    assert no_manifest.value.reason == "no package.json"
    assert invalid.value.reason == "package.json is not valid JSON"
    assert nameless.value.reason == "package.json has no name"
    assert all(not r.value.published for r in (no_manifest, invalid, nameless))


@pytest.mark.asyncio
async def test_npm_status_unpublished_is_distinct_from_transport_error() -> None:
    unpublished = await _assembler(npm=FakeNpm(_not_found())).npm_status("acme", "widgets")
    broken = await _assembler(
        npm=FakeNpm(FetchResult.failure(FailureKind.TRANSPORT_ERROR, "registry down"))
    ).npm_status("acme", "widgets")
    manifest_down = await _assembler(
        github=FakeGitHub(failures={"package.json": FetchResult.failure(FailureKind.TRANSPORT_ERROR, "timeout")})
    ).npm_status("acme", "widgets")

    assert unpublished.ok
    assert unpublished.value.applicable is True
    assert unpublished.value.published is False
    assert unpublished.value.reason == "not published to npm"
    assert not broken.ok
    assert broken.kind == FailureKind.TRANSPORT_ERROR
    assert not manifest_down.ok


@pytest.mark.asyncio
async def test_get_caches_by_repository_and_options() -> None:
    github = FakeGitHub()
    assembler = _assembler(github=github, cache=TTLCache("repositories", 600))

    first = await assembler.get("acme", "widgets")
    second = await assembler.get("acme", "widgets")
    assert first is second
    assert github.calls.count("get_repo_metadata") == 1

    await assembler.get("acme", "widgets", EnhancedRepositoryOptions(include_readme=False))
    assert github.calls.count("get_repo_metadata") == 2


@pytest.mark.asyncio
async def test_get_does_not_cache_missing_repositories() -> None:
    github = FakeGitHub(repo=None)
    assembler = _assembler(github=github, cache=TTLCache("repositories", 600))

    assert await assembler.get("acme", "missing") is None
    assert await assembler.get("acme", "missing") is None
    assert github.calls.count("get_repo_metadata") == 2


@pytest.mark.asyncio
async def test_assemble_many_reuses_listing_and_bounds_concurrency() -> None:
    listing = [dict(REPO, id=i, name=f"repo-{i}", full_name=f"acme/repo-{i}") for i in range(6)]
    github = FakeGitHub(listing=listing)
    active = 0
    peak = 0

    class SlowLinks(FakeLinks):
        async def find_links(self, owner, name):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return None

    records = await _assembler(github=github, links=SlowLinks(), max_concurrency=2).assemble_many("public")

    assert [record.name for record in records] == [f"repo-{i}" for i in range(6)]
    assert "get_repo_metadata" not in github.calls
    assert peak <= 2


@pytest.mark.asyncio
async def test_assemble_many_listing_failure_returns_none() -> None:
    github = FakeGitHub(failures={"list_repositories": FetchResult.failure(FailureKind.AUTH_ERROR, "bad token", 401)})
    assert await _assembler(github=github).assemble_many("all") is None


def test_base_fields_falls_back_to_full_name_for_owner() -> None:
    fields = base_fields({"name": "widgets", "full_name": "acme/widgets"})
    assert fields["owner"] == "acme"
    assert fields["pages"] is None
    assert fields["license"] is None


def test_repo_owner_prefers_login_then_full_name_then_default() -> None:
    assert repo_owner({"owner": {"login": "acme"}, "full_name": "other/widgets"}) == "acme"
    assert repo_owner({"full_name": "acme/widgets"}, "fallback") == "acme"
    assert repo_owner({"name": "widgets"}, "fallback") == "fallback"
    assert repo_owner({"name": "widgets"}) == ""


@pytest.mark.asyncio
async def test_batch_record_is_cached_under_its_assembled_owner() -> None:
    github = FakeGitHub(listing=[{"name": "bare", "id": 7}])
    assembler = _assembler(github=github, cache=TTLCache("repositories", 600))

    records = await assembler.assemble_many("all")
    assert [record.owner for record in records] == ["acme"]
    assert records[0].full_name == "acme/bare"

    cached = await assembler.get("acme", "bare")
    assert cached is records[0]
    assert "get_repo_metadata" not in github.calls
