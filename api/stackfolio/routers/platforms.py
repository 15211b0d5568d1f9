"""Raw deployment platform listings (Netlify, Vercel, Render)."""

from typing import Union

from fastapi import APIRouter, Depends, Request

from stackfolio.models.deployment import PlatformConfigError, PlatformSite
from stackfolio.services.deployment_platforms import DeploymentPlatformClient

router = APIRouter()

PlatformResponse = Union[list[PlatformSite], PlatformConfigError]


def get_platform_clients(request: Request) -> dict[str, DeploymentPlatformClient]:
    return request.app.state.platform_clients


# Configuration problems are returned with 200 and guidance, not as errors.
@router.get("/netlify", response_model=PlatformResponse)
async def netlify_sites(clients: dict[str, DeploymentPlatformClient] = Depends(get_platform_clients)):
    return await clients["netlify"].list_sites()


@router.get("/vercel", response_model=PlatformResponse)
async def vercel_projects(clients: dict[str, DeploymentPlatformClient] = Depends(get_platform_clients)):
    return await clients["vercel"].list_sites()


@router.get("/render", response_model=PlatformResponse)
async def render_services(clients: dict[str, DeploymentPlatformClient] = Depends(get_platform_clients)):
    return await clients["render"].list_sites()
