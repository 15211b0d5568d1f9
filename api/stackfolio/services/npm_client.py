"""npm registry client (public, no authentication)."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from stackfolio.models.package import NpmPackageInfo
from stackfolio.models.result import FailureKind, FetchResult

log = logging.getLogger(__name__)

NPM_WEBSITE = "https://www.npmjs.com/package"


def _npm_link(name: str) -> str:
    return f"{NPM_WEBSITE}/{name}"


def _keywords(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


def _is_valid_name(name: Any) -> bool:
    return isinstance(name, str) and bool(name.strip()) and len(name) <= 214


class NpmRegistryClient:
    def __init__(self, base_url: str = "https://registry.npmjs.org", timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def _get(self, url: str) -> FetchResult[dict]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, headers={"Accept": "application/json"}) as client:
                r = await client.get(url)
        except httpx.HTTPError as exc:
            log.warning("npm_registry_transport_error url=%s error=%s", url, exc)
            return FetchResult.failure(FailureKind.TRANSPORT_ERROR, f"{exc.__class__.__name__}: {exc}")
        log.info("npm_registry url=%s status=%s", url, r.status_code)
        if r.status_code == 404:
            return FetchResult.failure(FailureKind.NOT_FOUND, "package not found on npm", 404)
        if r.status_code == 429:
            return FetchResult.failure(FailureKind.RATE_LIMITED, "npm registry rate limit exceeded", 429)
        if r.status_code in {401, 403}:
            return FetchResult.failure(FailureKind.AUTH_ERROR, r.text[:200], r.status_code)
        if r.status_code >= 400:
            log.error("npm_registry_error url=%s status=%s", url, r.status_code)
            return FetchResult.failure(FailureKind.TRANSPORT_ERROR, f"npm registry error {r.status_code}", r.status_code)
        try:
            data = r.json()
        except ValueError:
            return FetchResult.failure(FailureKind.TRANSPORT_ERROR, "invalid JSON from npm registry", r.status_code)
        if not isinstance(data, dict):
            return FetchResult.failure(FailureKind.TRANSPORT_ERROR, "unexpected npm registry payload")
        return FetchResult.success(data)

    async def get_package_info(self, name: str) -> FetchResult[NpmPackageInfo]:
        """Full registry document reshaped; ``not_found`` when unpublished."""
        if not _is_valid_name(name):
            return FetchResult.failure(FailureKind.NOT_FOUND, "invalid package name")
        result = await self._get(f"{self._base_url}/{quote(name, safe='@')}")
        if not result.ok:
            return result
        data = result.value
        dist_tags = data.get("dist-tags") or {}
        latest: Optional[str] = dist_tags.get("latest")
        versions = data.get("versions") or {}
        latest_data = (versions.get(latest) or {}) if latest else {}
        time_info = data.get("time") or {}
        return FetchResult.success(
            NpmPackageInfo(
                name=data.get("name") or name,
                description=data.get("description"),
                version=latest,
                homepage=latest_data.get("homepage") or data.get("homepage"),
                repository=latest_data.get("repository") or data.get("repository"),
                keywords=_keywords(latest_data.get("keywords") or data.get("keywords")),
                license=latest_data.get("license") or data.get("license"),
                author=latest_data.get("author") or data.get("author"),
                maintainers=data.get("maintainers") or [],
                time=time_info,
                dist_tags=dist_tags,
                versions=list(versions.keys()),
                latest_version_published=time_info.get(latest) if latest else None,
                npm_link=_npm_link(name),
            )
        )

    async def get_package_latest(self, name: str) -> FetchResult[NpmPackageInfo]:
        """Latest version manifest only (smaller payload)."""
        if not _is_valid_name(name):
            return FetchResult.failure(FailureKind.NOT_FOUND, "invalid package name")
        result = await self._get(f"{self._base_url}/{quote(name, safe='@')}/latest")
        if not result.ok:
            return result
        data = result.value
        return FetchResult.success(
            NpmPackageInfo(
                name=data.get("name") or name,
                version=data.get("version"),
                description=data.get("description"),
                homepage=data.get("homepage"),
                repository=data.get("repository"),
                keywords=_keywords(data.get("keywords")),
                license=data.get("license"),
                author=data.get("author"),
                npm_link=_npm_link(name),
            )
        )
