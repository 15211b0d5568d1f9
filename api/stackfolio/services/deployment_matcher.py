"""Find where a repository is deployed on Netlify, Vercel and Render."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Union

from stackfolio.adapters.ttl_cache import TTLCache
from stackfolio.models.deployment import (
    DeploymentLinks,
    MatchResult,
    PlatformConfigError,
    PlatformListing,
    PlatformSite,
)
from stackfolio.models.repository import RepoRef
from stackfolio.services.deployment_platforms import DeploymentPlatformClient
from stackfolio.services.repo_url_parser import parse_repo_ref

log = logging.getLogger(__name__)

PLATFORMS = ("netlify", "vercel", "render")
PLATFORM_CACHE_KEY = "deploymentPlatforms"
FAILED_LISTING_TTL_SECONDS = 30.0

SiteSource = Union[PlatformListing, Iterable[PlatformSite], None]


def _sites(listing: SiteSource) -> Iterable[PlatformSite]:
    if listing is None or isinstance(listing, PlatformConfigError):
        return ()
    return listing


def match_platform(target: RepoRef, listing: SiteSource) -> Optional[MatchResult]:
    """First site whose repo parses to exactly ``target``; None when none does."""
    for site in _sites(listing):
        if not site.repo:
            continue
        ref = parse_repo_ref(site.repo)
        if ref is not None and ref.owner == target.owner and ref.name == target.name:
            return MatchResult(name=site.name, url=site.url, repo=site.repo, framework=site.framework)
    return None


def match_deployments(
    target: RepoRef,
    netlify: SiteSource,
    vercel: SiteSource,
    render: SiteSource,
) -> Optional[DeploymentLinks]:
    """Per-platform matches for ``target``; None when no platform has one."""
    links = DeploymentLinks(
        netlify=match_platform(target, netlify),
        vercel=match_platform(target, vercel),
        render=match_platform(target, render),
    )
    if links.netlify is None and links.vercel is None and links.render is None:
        return None
    return links


class DeploymentLinkService:
    """Matches repositories against platform listings fetched once per TTL."""

    def __init__(
        self,
        clients: dict[str, DeploymentPlatformClient],
        cache: TTLCache,
        ttl_seconds: Optional[float] = None,
        failed_listing_ttl_seconds: float = FAILED_LISTING_TTL_SECONDS,
    ) -> None:
        missing = [name for name in PLATFORMS if name not in clients]
        if missing:
            raise ValueError(f"missing platform clients: {', '.join(missing)}")
        self._clients = clients
        self._cache = cache
        self._ttl_seconds = ttl_seconds
        self._failed_listing_ttl_seconds = max(0.0, float(failed_listing_ttl_seconds))

    async def _fetch_all(self) -> dict[str, PlatformListing]:
        listings = await asyncio.gather(*(self._clients[name].list_sites() for name in PLATFORMS))
        for name, listing in zip(PLATFORMS, listings):
            if isinstance(listing, PlatformConfigError):
                log.warning("deployment_platform_unavailable platform=%s message=%s", name, listing.message)
        return dict(zip(PLATFORMS, listings))

    def _listings_ttl(self, listings: dict[str, PlatformListing]) -> Optional[float]:
        # Missing tokens stay missing until restart; upstream failures do not.
        for listing in listings.values():
            if isinstance(listing, PlatformConfigError) and listing.configured:
                return self._failed_listing_ttl_seconds
        return None

    async def platform_sites(self) -> dict[str, PlatformListing]:
        """All three listings, cached together under one key.

        A set holding an upstream failure (timeout, error status, bad payload)
        is kept only for the short failed-listing TTL.
        """
        return await self._cache.get_or_load(
            PLATFORM_CACHE_KEY,
            self._fetch_all,
            ttl_seconds=self._ttl_seconds,
            ttl_for=self._listings_ttl,
        )

    def invalidate(self) -> None:
        self._cache.delete(PLATFORM_CACHE_KEY)

    async def find_links(self, owner: str, name: str) -> Optional[DeploymentLinks]:
        sites = await self.platform_sites()
        return match_deployments(
            RepoRef(owner=owner, name=name),
            sites.get("netlify"),
            sites.get("vercel"),
            sites.get("render"),
        )
