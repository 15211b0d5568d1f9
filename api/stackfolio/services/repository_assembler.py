"""Enhanced repository assembly.

One record = base metadata + any subset of: readme, languages, stats,
releases, workflows (+ workflow_runs), cicd_status, deployments, npm and
deployment_links.

- base metadata is fetched first; failure means "not found" and nothing else
  is requested
- enabled sub-resources are fetched concurrently and each one settles on its
  own: a failure becomes ``None`` for that key only
- batch assembly runs through a fixed-width pool so a large account does not
  flood the GitHub rate limit
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from stackfolio.adapters.ttl_cache import CacheKeyError, TTLCache
from stackfolio.models.package import NpmStatus
from stackfolio.models.repository import (
    CICDStatus,
    EnhancedRepository,
    EnhancedRepositoryOptions,
    RepositoryStats,
)
from stackfolio.models.result import FailureKind, FetchResult
from stackfolio.services.dependency_aggregator import parse_manifest
from stackfolio.services.deployment_matcher import DeploymentLinkService
from stackfolio.services.github_client import GitHubClient
from stackfolio.services.npm_client import NpmRegistryClient
from stackfolio.services.npm_publish_detector import is_npm_publish_workflow, is_workflow_file

log = logging.getLogger(__name__)

RELEASES_LIMIT = 10
WORKFLOW_RUNS_LIMIT = 10
DEPLOYMENTS_LIMIT = 10
WORKFLOWS_DIR = ".github/workflows"

_CICD_FIELDS = tuple(CICDStatus.model_fields)
_FIELD_ADAPTERS: dict[str, TypeAdapter] = {}


def _field_adapter(key: str) -> TypeAdapter:
    adapter = _FIELD_ADAPTERS.get(key)
    if adapter is None:
        adapter = TypeAdapter(EnhancedRepository.model_fields[key].annotation)
        _FIELD_ADAPTERS[key] = adapter
    return adapter


def pages_url(repo: dict[str, Any]) -> Optional[str]:
    """GitHub Pages URL for repositories that have Pages enabled."""
    if not repo.get("has_pages"):
        return None
    owner = (repo.get("owner") or {}).get("login")
    if not owner or not repo.get("name"):
        return None
    return f"https://{owner}.github.io/{repo['name']}"


def repo_owner(repo: dict[str, Any], default: Optional[str] = None) -> str:
    """Owner login, then the ``full_name`` prefix, then ``default``."""
    login = (repo.get("owner") or {}).get("login")
    if login:
        return login
    full_name = str(repo.get("full_name") or "")
    if "/" in full_name and full_name.split("/", 1)[0]:
        return full_name.split("/", 1)[0]
    return default or ""


def base_fields(repo: dict[str, Any], default_owner: Optional[str] = None) -> dict[str, Any]:
    """Reduce a GitHub repository payload to the EnhancedRepository base fields."""
    owner = repo_owner(repo, default_owner)
    license_info = repo.get("license")
    return {
        "id": repo.get("id"),
        "name": repo["name"],
        "full_name": repo.get("full_name") or f"{owner}/{repo['name']}",
        "owner": owner,
        "description": repo.get("description"),
        "html_url": repo.get("html_url"),
        "homepage": repo.get("homepage") or None,
        "language": repo.get("language"),
        "topics": [str(topic) for topic in repo.get("topics") or []],
        "visibility": repo.get("visibility"),
        "private": bool(repo.get("private")),
        "fork": bool(repo.get("fork")),
        "archived": bool(repo.get("archived")),
        "default_branch": repo.get("default_branch"),
        "stargazers_count": int(repo.get("stargazers_count") or 0),
        "watchers_count": int(repo.get("watchers_count") or 0),
        "forks_count": int(repo.get("forks_count") or 0),
        "open_issues_count": int(repo.get("open_issues_count") or 0),
        "size": int(repo.get("size") or 0),
        "license": license_info.get("spdx_id") if isinstance(license_info, dict) else None,
        "pages": pages_url(repo),
        "created_at": repo.get("created_at"),
        "updated_at": repo.get("updated_at"),
        "pushed_at": repo.get("pushed_at"),
    }


def cicd_status_from_runs(runs: Optional[list[dict[str, Any]]]) -> Optional[CICDStatus]:
    """Fixed subset of the most recent run; None when there are no runs yet."""
    if not runs:
        return None
    latest = runs[0]
    if not isinstance(latest, dict):
        return None
    return CICDStatus(**{key: latest.get(key) for key in _CICD_FIELDS})


class RepositoryAssembler:
    def __init__(
        self,
        github: GitHubClient,
        npm: NpmRegistryClient,
        deployment_links: DeploymentLinkService,
        cache: Optional[TTLCache] = None,
        max_concurrency: int = 4,
    ) -> None:
        self._github = github
        self._npm = npm
        self._deployment_links = deployment_links
        self._cache = cache
        self._max_concurrency = max(1, int(max_concurrency))

    async def get(
        self,
        owner: str,
        name: str,
        options: Optional[EnhancedRepositoryOptions] = None,
    ) -> Optional[EnhancedRepository]:
        """Cached ``assemble``; "not found" results are not cached."""
        options = options or EnhancedRepositoryOptions()
        return await self._cached(owner, name, options, lambda: self.assemble(owner, name, options))

    async def _cached(
        self,
        owner: str,
        name: str,
        options: EnhancedRepositoryOptions,
        loader: Callable[[], Awaitable[Optional[EnhancedRepository]]],
    ) -> Optional[EnhancedRepository]:
        if self._cache is None:
            return await loader()
        key = f"enhanced:{owner}/{name}:{options.cache_token()}"
        return await self._cache.get_or_load(key, loader)

    async def assemble(
        self,
        owner: str,
        name: str,
        options: Optional[EnhancedRepositoryOptions] = None,
    ) -> Optional[EnhancedRepository]:
        options = options or EnhancedRepositoryOptions()
        base = await self._github.get_repo_metadata(owner, name)
        if not base.ok or not isinstance(base.value, dict) or not base.value.get("name"):
            log.info("enhanced_repo_base_missing repo=%s/%s kind=%s", owner, name, base.kind)
            return None
        return await self._assemble_from(base.value, options)

    async def _assemble_from(
        self,
        repo: dict[str, Any],
        options: EnhancedRepositoryOptions,
    ) -> EnhancedRepository:
        record = base_fields(repo, self._github.username)
        owner, name = record["owner"], record["name"]
        gh = self._github

        loaders: dict[str, Callable[[], Awaitable[Any]]] = {}
        if options.include_readme:
            loaders["readme"] = lambda: gh.get_readme(owner, name)
        if options.include_languages:
            loaders["languages"] = lambda: gh.get_languages(owner, name)
        if options.include_stats:
            loaders["stats"] = lambda: self._stats(owner, name)
        if options.include_releases:
            loaders["releases"] = lambda: gh.get_releases(owner, name, limit=RELEASES_LIMIT)
        if options.include_workflows:
            loaders["workflows"] = lambda: gh.get_workflows(owner, name)
            loaders["workflow_runs"] = lambda: gh.get_workflow_runs(owner, name, limit=WORKFLOW_RUNS_LIMIT)
        if options.include_cicd:
            loaders["cicd_status"] = lambda: self._cicd_status(owner, name)
        if options.include_deployments:
            loaders["deployments"] = lambda: gh.get_deployments(owner, name, limit=DEPLOYMENTS_LIMIT)
        if options.include_npm:
            loaders["npm"] = lambda: self.npm_status(owner, name)
        if options.include_deployment_links:
            loaders["deployment_links"] = lambda: self._deployment_links.find_links(owner, name)

        keys = list(loaders)
        values = await asyncio.gather(*(self._settle(f"{owner}/{name}", key, loaders[key]) for key in keys))
        record.update(zip(keys, values))
        return EnhancedRepository(**record)

    async def _settle(self, repo: str, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Run one sub-resource fetch; failures and unexpected shapes become None."""
        try:
            outcome = await loader()
        except CacheKeyError:
            raise
        except Exception:
            log.warning("enhanced_repo_subresource_failed repo=%s key=%s", repo, key, exc_info=True)
            return None
        if isinstance(outcome, FetchResult):
            if not outcome.ok:
                level = logging.INFO if outcome.kind == FailureKind.NOT_FOUND else logging.WARNING
                log.log(level, "enhanced_repo_subresource_missing repo=%s key=%s kind=%s", repo, key, outcome.kind)
                return None
            outcome = outcome.value
        try:
            return _field_adapter(key).validate_python(outcome)
        except ValidationError as exc:
            log.warning(
                "enhanced_repo_subresource_invalid repo=%s key=%s errors=%d", repo, key, exc.error_count()
            )
            return None

    async def _stats(self, owner: str, name: str) -> Optional[RepositoryStats]:
        gh = self._github
        results = await asyncio.gather(
            gh.get_commit_activity(owner, name),
            gh.get_contributor_stats(owner, name),
            gh.get_code_frequency(owner, name),
            gh.get_participation(owner, name),
        )
        if not any(result.ok for result in results):
            return None
        commit_activity, contributors, code_frequency, participation = (r.value_or_none() for r in results)
        return RepositoryStats(
            commit_activity=commit_activity,
            contributors=contributors,
            code_frequency=code_frequency,
            participation=participation,
        )

    async def _cicd_status(self, owner: str, name: str) -> FetchResult[Optional[CICDStatus]]:
        runs = await self._github.get_workflow_runs(owner, name, limit=1)
        if not runs.ok:
            return runs
        return FetchResult.success(cicd_status_from_runs(runs.value))

    async def npm_status(self, owner: str, name: str) -> FetchResult[NpmStatus]:
        """Cross-reference package.json, publish workflows and the npm registry."""
        manifest_text = await self._github.get_file_content(owner, name, "package.json")
        if manifest_text.not_found:
            return FetchResult.success(NpmStatus(applicable=False, reason="no package.json"))
        if not manifest_text.ok:
            return manifest_text
        manifest = parse_manifest(manifest_text.value, source=f"{owner}/{name}")
        if manifest is None:
            return FetchResult.success(NpmStatus(applicable=False, reason="package.json is not valid JSON"))
        package_name = manifest.get("name")
        if not isinstance(package_name, str) or not package_name.strip():
            return FetchResult.success(NpmStatus(applicable=False, reason="package.json has no name"))

        publish_workflows, registry = await asyncio.gather(
            self._publish_workflows(owner, name),
            self._npm.get_package_info(package_name),
        )
        if not registry.ok and not registry.not_found:
            return registry
        return FetchResult.success(
            NpmStatus(
                applicable=True,
                published=registry.ok,
                package_name=package_name,
                private=bool(manifest.get("private")),
                reason=None if registry.ok else "not published to npm",
                has_publish_workflow=bool(publish_workflows),
                publish_workflows=publish_workflows,
                package=registry.value_or_none(),
            )
        )

    async def _publish_workflows(self, owner: str, name: str) -> list[str]:
        listing = await self._github.get_contents(owner, name, WORKFLOWS_DIR)
        if not listing.ok or not isinstance(listing.value, list):
            return []
        paths = [
            entry["path"]
            for entry in listing.value
            if isinstance(entry, dict) and entry.get("type") == "file" and is_workflow_file(entry.get("name"))
        ]
        texts = await asyncio.gather(*(self._github.get_file_content(owner, name, path) for path in paths))
        return [path for path, text in zip(paths, texts) if is_npm_publish_workflow(text.value_or_none())]

    async def assemble_many(
        self,
        visibility: str = "public",
        options: Optional[EnhancedRepositoryOptions] = None,
    ) -> Optional[list[EnhancedRepository]]:
        """Enhanced records for every listed repository; None if listing fails."""
        options = options or EnhancedRepositoryOptions()
        listing = await self._github.list_repositories(visibility)
        if not listing.ok:
            log.error("enhanced_repo_listing_failed visibility=%s kind=%s", visibility, listing.kind)
            return None
        repos = [repo for repo in listing.value or [] if isinstance(repo, dict) and repo.get("name")]
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _one(repo: dict[str, Any]) -> Optional[EnhancedRepository]:
            # Listing rows carry the full repository payload, so the base fetch is skipped.
            owner = repo_owner(repo, self._github.username)
            async with semaphore:
                return await self._cached(owner, repo["name"], options, lambda: self._assemble_from(repo, options))

        records = await asyncio.gather(*(_one(repo) for repo in repos))
        log.info("enhanced_repo_batch visibility=%s repos=%d assembled=%d", visibility, len(repos), sum(1 for r in records if r))
        return [record for record in records if record is not None]
