"""Package models: aggregated package.json data and npm registry records."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class VersionPolicy(str, Enum):
    MIN = "min"
    MAX = "max"
    MINMAX = "minmax"


class AggregatedDependencies(BaseModel):
    """GET /package.json response."""

    dependencies: dict[str, str] = Field(default_factory=dict)
    devDependencies: dict[str, str] = Field(default_factory=dict)


class NpmPackageInfo(BaseModel):
    """Registry document reshaped for clients (full or latest-only)."""

    name: str
    version: Optional[str] = None
    description: Optional[str] = None
    homepage: Optional[str] = None
    repository: Optional[Any] = None
    keywords: list[str] = Field(default_factory=list)
    license: Optional[Any] = None
    author: Optional[Any] = None
    maintainers: Optional[list[Any]] = None
    time: Optional[dict[str, Any]] = None
    dist_tags: Optional[dict[str, str]] = None
    versions: Optional[list[str]] = None
    latest_version_published: Optional[str] = None
    npm_link: str
    exists: bool = True


class NpmStatus(BaseModel):
    """npm view of one repository.

    ``applicable`` is False when the repository has no usable package.json;
    ``published`` is False when the registry has never heard of the name.
    """

    applicable: bool
    published: bool = False
    package_name: Optional[str] = None
    private: bool = False
    reason: Optional[str] = None
    has_publish_workflow: bool = False
    publish_workflows: list[str] = Field(default_factory=list)
    package: Optional[NpmPackageInfo] = None
