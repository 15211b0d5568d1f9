"""Aggregate package.json dependencies across repositories.

Every specifier is coerced to a concrete ``major.minor.patch`` (``^4.17.0`` ->
4.17.0, ``~2.0`` -> 2.0.0) and folded into a running min/max per package.
The published view depends on the version policy:

- ``min``: lowest version seen
- ``max``: highest version seen
- ``minmax``: ``"{min} - {max}"``, or a single version when they agree

Specifiers with no numeric part (``latest``, ``workspace:*``, git URLs without
a tag) contribute nothing; a package that never coerces is left out.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from stackfolio.adapters.ttl_cache import TTLCache
from stackfolio.models.package import AggregatedDependencies, VersionPolicy
from stackfolio.services.github_client import GitHubClient

log = logging.getLogger(__name__)

Version = tuple[int, int, int]

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies")

_COERCE = re.compile(r"(?:^|[^\d])(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?:$|[^\d])")


def coerce_version(spec: Any) -> Optional[Version]:
    """Return the first numeric version triple in ``spec``; missing parts are 0."""
    if not isinstance(spec, str):
        return None
    match = _COERCE.search(spec)
    if not match:
        return None
    major, minor, patch = match.groups()
    return (int(major), int(minor or 0), int(patch or 0))


def format_version(version: Version) -> str:
    return f"{version[0]}.{version[1]}.{version[2]}"


def parse_policy(raw: Any, default: VersionPolicy = VersionPolicy.MAX) -> VersionPolicy:
    """Lenient policy lookup for query strings; unknown values give ``default``."""
    try:
        return VersionPolicy(str(raw).strip().lower())
    except ValueError:
        return default


@dataclass
class VersionRange:
    min: Version
    max: Version

    def widen(self, version: Version) -> None:
        if version < self.min:
            self.min = version
        if version > self.max:
            self.max = version

    def render(self, policy: VersionPolicy) -> str:
        if policy == VersionPolicy.MIN:
            return format_version(self.min)
        if policy == VersionPolicy.MAX:
            return format_version(self.max)
        if self.min == self.max:
            return format_version(self.min)
        return f"{format_version(self.min)} - {format_version(self.max)}"


class DependencyFold:
    """Running min/max per package name for one dependency section."""

    def __init__(self) -> None:
        self.records: dict[str, VersionRange] = {}

    def add(self, section: Optional[Mapping[str, Any]]) -> None:
        if not isinstance(section, Mapping):
            return
        for name, spec in section.items():
            version = coerce_version(spec)
            if version is None:
                log.debug("dependency_version_not_coercible package=%s spec=%r", name, spec)
                continue
            current = self.records.get(name)
            if current is None:
                self.records[name] = VersionRange(min=version, max=version)
            else:
                current.widen(version)

    def view(self, policy: VersionPolicy) -> dict[str, str]:
        policy = VersionPolicy(policy)
        return {name: self.records[name].render(policy) for name in sorted(self.records)}


def aggregate_dependencies(
    manifests: Iterable[Optional[Mapping[str, Any]]],
    policy: VersionPolicy | str = VersionPolicy.MAX,
) -> AggregatedDependencies:
    """Fold ``{dependencies, devDependencies}`` manifests into one view.

    ``policy`` must be a VersionPolicy value; anything else raises ValueError.
    Manifests that are None are skipped.
    """
    policy = VersionPolicy(policy)
    folds = {section: DependencyFold() for section in DEPENDENCY_SECTIONS}
    for manifest in manifests:
        if not isinstance(manifest, Mapping):
            continue
        for section, fold in folds.items():
            fold.add(manifest.get(section))
    return AggregatedDependencies(
        dependencies=folds["dependencies"].view(policy),
        devDependencies=folds["devDependencies"].view(policy),
    )


def parse_manifest(text: Optional[str], source: str = "") -> Optional[dict[str, Any]]:
    """Decode package.json text; None when absent or not a JSON object."""
    if not text:
        return None
    try:
        data = json.loads(text)
    except ValueError:
        log.warning("package_json_invalid source=%s", source)
        return None
    return data if isinstance(data, dict) else None


class DependencyAggregationService:
    """Aggregates package.json data for every repository of the account."""

    def __init__(self, github: GitHubClient, cache: TTLCache, max_concurrency: int = 8) -> None:
        self._github = github
        self._cache = cache
        self._max_concurrency = max(1, int(max_concurrency))

    @staticmethod
    def cache_key(policy: VersionPolicy) -> str:
        return f"packageData-{VersionPolicy(policy).value}"

    async def fetch_aggregated(self, policy: VersionPolicy = VersionPolicy.MAX) -> AggregatedDependencies:
        policy = VersionPolicy(policy)
        result = await self._cache.get_or_load(self.cache_key(policy), lambda: self._aggregate(policy))
        return result if result is not None else AggregatedDependencies()

    async def refresh(self, policy: VersionPolicy = VersionPolicy.MAX) -> AggregatedDependencies:
        self._cache.delete(self.cache_key(policy))
        return await self.fetch_aggregated(policy)

    async def _aggregate(self, policy: VersionPolicy) -> Optional[AggregatedDependencies]:
        listing = await self._github.list_repositories("all")
        if not listing.ok:
            log.error("package_aggregation_listing_failed kind=%s detail=%s", listing.kind, listing.detail)
            return None
        repos = [repo for repo in listing.value or [] if isinstance(repo, dict) and repo.get("name")]
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _manifest(repo: dict[str, Any]) -> Optional[dict[str, Any]]:
            owner = (repo.get("owner") or {}).get("login") or self._github.username
            async with semaphore:
                content = await self._github.get_file_content(owner, repo["name"], "package.json")
            return parse_manifest(content.value_or_none(), source=f"{owner}/{repo['name']}")

        manifests = await asyncio.gather(*(_manifest(repo) for repo in repos))
        found = sum(1 for manifest in manifests if manifest is not None)
        log.info("package_aggregation policy=%s repos=%d manifests=%d", policy.value, len(repos), found)
        return aggregate_dependencies(manifests, policy)
