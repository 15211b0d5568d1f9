"""Repository models: parsed references, listings and enhanced records."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from stackfolio.models.deployment import DeploymentLinks
from stackfolio.models.package import NpmStatus


class RepoRef(BaseModel):
    """Normalized (owner, name) reference to a GitHub repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class RepositorySummary(BaseModel):
    """Row for GET /repos."""

    name: str
    description: Optional[str] = None
    html_url: Optional[str] = None
    homepage: Optional[str] = None
    language: Optional[str] = None
    deployments: Optional[str] = None
    pages: Optional[str] = None


class CICDStatus(BaseModel):
    """Latest workflow run, reduced to the fields dashboards display."""

    id: Optional[int] = None
    name: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    event: Optional[str] = None
    head_branch: Optional[str] = None
    head_sha: Optional[str] = None
    run_number: Optional[int] = None
    html_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RepositoryStats(BaseModel):
    commit_activity: Optional[list[dict[str, Any]]] = None
    contributors: Optional[list[dict[str, Any]]] = None
    code_frequency: Optional[list[Any]] = None
    participation: Optional[dict[str, Any]] = None


class EnhancedRepositoryOptions(BaseModel):
    """Which sub-resources to include. Every flag defaults to on."""

    model_config = ConfigDict(frozen=True)

    include_readme: bool = True
    include_languages: bool = True
    include_stats: bool = True
    include_releases: bool = True
    include_workflows: bool = True
    include_cicd: bool = True
    include_deployments: bool = True
    include_npm: bool = True
    include_deployment_links: bool = True

    def cache_token(self) -> str:
        """Stable bitstring of the enabled flags, used in cache keys."""
        flags = self.model_dump()
        return "".join("1" if flags[key] else "0" for key in sorted(flags))


class EnhancedRepository(BaseModel):
    """Base repository metadata merged with the requested sub-resources."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    name: str
    full_name: str
    owner: str
    description: Optional[str] = None
    html_url: Optional[str] = None
    homepage: Optional[str] = None
    language: Optional[str] = None
    topics: list[str] = Field(default_factory=list)
    visibility: Optional[str] = None
    private: bool = False
    fork: bool = False
    archived: bool = False
    default_branch: Optional[str] = None
    stargazers_count: int = 0
    watchers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    size: int = 0
    license: Optional[str] = None
    pages: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    pushed_at: Optional[str] = None

    readme: Optional[str] = None
    languages: Optional[dict[str, int]] = None
    stats: Optional[RepositoryStats] = None
    releases: Optional[list[dict[str, Any]]] = None
    workflows: Optional[list[dict[str, Any]]] = None
    workflow_runs: Optional[list[dict[str, Any]]] = None
    cicd_status: Optional[CICDStatus] = None
    deployments: Optional[list[dict[str, Any]]] = None
    npm: Optional[NpmStatus] = None
    deployment_links: Optional[DeploymentLinks] = None
