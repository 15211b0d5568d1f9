"""Deployment platform clients: Netlify, Vercel, Render.

One generic client does the HTTP work; each platform contributes a response
validator and a transform into PlatformSite rows. Problems are returned as a
PlatformConfigError value (not raised) so routes can show guidance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from stackfolio.config import Settings
from stackfolio.models.deployment import PlatformConfigError, PlatformListing, PlatformSite

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformSpec:
    name: str
    token_env: str
    path: str
    validate: Callable[[Any], bool]
    transform: Callable[[Any], list[PlatformSite]]


class DeploymentPlatformClient:
    def __init__(
        self,
        spec: PlatformSpec,
        api_url: str,
        token: Optional[str],
        timeout: float = 15.0,
    ) -> None:
        self.spec = spec
        self._url = f"{api_url.rstrip('/')}{spec.path}"
        self._token = (token or "").strip() or None
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def configured(self) -> bool:
        return self._token is not None

    async def list_sites(self) -> PlatformListing:
        platform = self.spec.name
        if not self._token:
            return PlatformConfigError(
                message=(
                    f"{platform} API token is not configured. "
                    f"Please set {self.spec.token_env} in your environment variables."
                ),
                configured=False,
            )
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Authorization": f"Bearer {self._token}"},
            ) as client:
                r = await client.get(self._url)
            log.info("platform_api platform=%s url=%s status=%s", platform, self._url, r.status_code)

            if r.status_code >= 400:
                log.error("platform_api_error platform=%s status=%s body=%s", platform, r.status_code, r.text[:200])
                if r.status_code in {401, 403}:
                    return PlatformConfigError(
                        message=f"{platform} API authentication failed. Please check your {self.spec.token_env}.",
                        configured=True,
                        error=r.text,
                    )
                return PlatformConfigError(
                    message=f"{platform} API error: {r.status_code} {r.reason_phrase}".rstrip(),
                    configured=True,
                    error=r.text,
                )

            data = r.json()
            if not self.spec.validate(data):
                log.error("platform_api_unexpected_format platform=%s", platform)
                return PlatformConfigError(
                    message=f"{platform} API returned unexpected data format.",
                    configured=True,
                )
            return self.spec.transform(data)
        except (httpx.HTTPError, ValueError) as exc:
            log.error("platform_api_failed platform=%s error=%s", platform, exc)
            return PlatformConfigError(
                message=f"Error fetching {platform} sites: {exc}",
                configured=True,
            )


def _get(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def transform_netlify(data: list[dict]) -> list[PlatformSite]:
    return [
        PlatformSite(
            name=site.get("name") or "Unknown",
            url=site.get("url"),
            ssl_url=site.get("ssl_url"),
            img=site.get("screenshot_url"),
            repo=_get(site, "build_settings", "repo_url"),
            node=_get(site, "versions", "node"),
        )
        for site in data
        if isinstance(site, dict)
    ]


def _vercel_url(project: dict) -> Optional[str]:
    deployments = project.get("latestDeployments")
    if not isinstance(deployments, list) or not deployments:
        return None
    aliases = deployments[0].get("alias") if isinstance(deployments[0], dict) else None
    if isinstance(aliases, list) and aliases:
        return f"https://{aliases[0]}"
    return None


def _vercel_repo(project: dict) -> Optional[str]:
    link = project.get("link")
    if not isinstance(link, dict):
        return None
    if link.get("type") and link.get("org") and link.get("repo"):
        return f"https://{link['type']}.com/{link['org']}/{link['repo']}"
    return None


def transform_vercel(data: dict) -> list[PlatformSite]:
    return [
        PlatformSite(
            name=project.get("name") or "Unknown",
            url=_vercel_url(project),
            repo=_vercel_repo(project),
            framework=project.get("framework"),
            node=project.get("nodeVersion"),
        )
        for project in data["projects"]
        if isinstance(project, dict)
    ]


def transform_render(data: list[dict]) -> list[PlatformSite]:
    return [
        PlatformSite(
            name=_get(item, "service", "name") or "Unknown",
            url=_get(item, "service", "serviceDetails", "url"),
            repo=_get(item, "service", "repo"),
        )
        for item in data
        if isinstance(item, dict)
    ]


NETLIFY = PlatformSpec(
    name="Netlify",
    token_env="NETLIFY_TOKEN",
    path="/sites",
    validate=lambda data: isinstance(data, list),
    transform=transform_netlify,
)
VERCEL = PlatformSpec(
    name="Vercel",
    token_env="VERCEL_TOKEN",
    path="/v9/projects",
    validate=lambda data: isinstance(data, dict) and isinstance(data.get("projects"), list),
    transform=transform_vercel,
)
RENDER = PlatformSpec(
    name="Render",
    token_env="RENDER_TOKEN",
    path="/services",
    validate=lambda data: isinstance(data, list),
    transform=transform_render,
)


def build_platform_clients(settings: Settings) -> dict[str, DeploymentPlatformClient]:
    """Clients keyed by the lowercase platform name used in DeploymentLinks."""
    timeout = settings.http_timeout_seconds
    return {
        "netlify": DeploymentPlatformClient(NETLIFY, settings.netlify_api_url, settings.netlify_token, timeout),
        "vercel": DeploymentPlatformClient(VERCEL, settings.vercel_api_url, settings.vercel_token, timeout),
        "render": DeploymentPlatformClient(RENDER, settings.render_api_url, settings.render_token, timeout),
    }
