"""Deployment platform models: Netlify, Vercel, Render."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

PlatformName = Literal["netlify", "vercel", "render"]


class PlatformSite(BaseModel):
    """One site/project/service as listed by a deployment platform."""

    name: str
    url: Optional[str] = None
    repo: Optional[str] = None
    framework: Optional[str] = None
    node: Optional[str] = None
    ssl_url: Optional[str] = None
    img: Optional[str] = None


class PlatformConfigError(BaseModel):
    """Returned (not raised) when a platform cannot be listed.

    ``configured`` is False only when the platform token is missing.
    """

    message: str
    configured: bool
    error: Optional[str] = None


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: Optional[str] = None
    repo: Optional[str] = None
    framework: Optional[str] = None


class DeploymentLinks(BaseModel):
    model_config = ConfigDict(frozen=True)

    netlify: Optional[MatchResult] = None
    vercel: Optional[MatchResult] = None
    render: Optional[MatchResult] = None


PlatformListing = list[PlatformSite] | PlatformConfigError
