"""Repository routes: listings, enhanced records, deployment links."""

from __future__ import annotations

import html
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse

from stackfolio.models.deployment import DeploymentLinks
from stackfolio.models.error import ErrorDetail
from stackfolio.models.repository import EnhancedRepository, EnhancedRepositoryOptions, RepositorySummary
from stackfolio.routers.negotiation import wants_html
from stackfolio.services.deployment_matcher import DeploymentLinkService
from stackfolio.services.github_client import GitHubClient
from stackfolio.services.repository_assembler import RepositoryAssembler, pages_url

router = APIRouter()

VISIBILITIES = {"all", "public", "private", "owner", "member"}


def get_github(request: Request) -> GitHubClient:
    return request.app.state.github


def get_assembler(request: Request) -> RepositoryAssembler:
    return request.app.state.assembler


def get_deployment_links(request: Request) -> DeploymentLinkService:
    return request.app.state.deployment_links


def enhanced_options(
    include_readme: bool = Query(True),
    include_languages: bool = Query(True),
    include_stats: bool = Query(True),
    include_releases: bool = Query(True),
    include_workflows: bool = Query(True),
    include_cicd: bool = Query(True),
    include_deployments: bool = Query(True),
    include_npm: bool = Query(True),
    include_deployment_links: bool = Query(True),
) -> EnhancedRepositoryOptions:
    return EnhancedRepositoryOptions(
        include_readme=include_readme,
        include_languages=include_languages,
        include_stats=include_stats,
        include_releases=include_releases,
        include_workflows=include_workflows,
        include_cicd=include_cicd,
        include_deployments=include_deployments,
        include_npm=include_npm,
        include_deployment_links=include_deployment_links,
    )


def _summary(repo: dict) -> RepositorySummary:
    return RepositorySummary(
        name=repo["name"],
        description=repo.get("description"),
        html_url=repo.get("html_url"),
        homepage=repo.get("homepage"),
        language=repo.get("language"),
        deployments=repo.get("deployments_url"),
        pages=pages_url(repo),
    )


async def _list_repos(visibility: str, request: Request, github: GitHubClient):
    listing = await github.list_repositories(visibility)
    if not listing.ok:
        raise HTTPException(status_code=502, detail=f"GitHub repository listing failed: {listing.kind.value}")
    rows = [_summary(repo) for repo in listing.value if isinstance(repo, dict) and repo.get("name")]
    if wants_html(request):
        items = "\n".join(
            f'<li><a href="{html.escape(row.html_url or "", quote=True)}">{html.escape(row.name)}</a></li>'
            for row in rows
        )
        return HTMLResponse(f'<ul style="list-style: none; margin: 0; padding: 0;">{items}</ul>')
    return rows


@router.get(
    "/repos",
    response_model=list[RepositorySummary],
    responses={406: {"model": ErrorDetail}, 502: {"model": ErrorDetail}},
)
async def list_public_repos(request: Request, github: GitHubClient = Depends(get_github)):
    """Public repositories, as HTML links or JSON depending on Accept."""
    return await _list_repos("public", request, github)


@router.get(
    "/repos/all",
    response_model=list[RepositorySummary],
    responses={406: {"model": ErrorDetail}, 502: {"model": ErrorDetail}},
)
async def list_all_repos(request: Request, github: GitHubClient = Depends(get_github)):
    """All repositories visible to the token."""
    return await _list_repos("all", request, github)


@router.get(
    "/repos/enhanced",
    response_model=list[EnhancedRepository],
    responses={502: {"model": ErrorDetail}},
)
async def list_enhanced_repos(
    visibility: str = Query("public", description="GitHub listing type: all, public, private, owner, member."),
    options: EnhancedRepositoryOptions = Depends(enhanced_options),
    assembler: RepositoryAssembler = Depends(get_assembler),
) -> list[EnhancedRepository]:
    if visibility not in VISIBILITIES:
        raise HTTPException(status_code=422, detail=f"visibility must be one of {sorted(VISIBILITIES)}")
    records = await assembler.assemble_many(visibility, options)
    if records is None:
        raise HTTPException(status_code=502, detail="GitHub repository listing failed")
    return records


@router.get(
    "/repos/{owner}/{name}/enhanced",
    response_model=EnhancedRepository,
    responses={404: {"model": ErrorDetail}},
)
async def get_enhanced_repo(
    owner: str,
    name: str,
    options: EnhancedRepositoryOptions = Depends(enhanced_options),
    assembler: RepositoryAssembler = Depends(get_assembler),
) -> EnhancedRepository:
    record = await assembler.get(owner, name, options)
    if record is None:
        raise HTTPException(status_code=404, detail="Repository not found")
    return record


@router.get("/repos/{owner}/{name}/deployment-links", response_model=Optional[DeploymentLinks])
async def get_deployment_links_for_repo(
    owner: str,
    name: str,
    service: DeploymentLinkService = Depends(get_deployment_links),
) -> Optional[DeploymentLinks]:
    """Matching Netlify/Vercel/Render entries, or null when none match."""
    return await service.find_links(owner, name)
