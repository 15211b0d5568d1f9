"""Pydantic models."""

from stackfolio.models.deployment import (
    DeploymentLinks,
    MatchResult,
    PlatformConfigError,
    PlatformSite,
)
from stackfolio.models.error import ErrorDetail
from stackfolio.models.package import AggregatedDependencies, NpmPackageInfo, NpmStatus, VersionPolicy
from stackfolio.models.repository import (
    EnhancedRepository,
    EnhancedRepositoryOptions,
    RepoRef,
    RepositorySummary,
)
from stackfolio.models.result import FailureKind, FetchResult

__all__ = [
    "AggregatedDependencies",
    "DeploymentLinks",
    "EnhancedRepository",
    "EnhancedRepositoryOptions",
    "ErrorDetail",
    "FailureKind",
    "FetchResult",
    "MatchResult",
    "NpmPackageInfo",
    "NpmStatus",
    "PlatformConfigError",
    "PlatformSite",
    "RepoRef",
    "RepositorySummary",
    "VersionPolicy",
]
