"""npm registry lookups."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from stackfolio.models.error import ErrorDetail
from stackfolio.models.package import NpmPackageInfo
from stackfolio.models.result import FailureKind
from stackfolio.services.npm_client import NpmRegistryClient

router = APIRouter()

_FAILURE_STATUS = {
    FailureKind.NOT_FOUND: 404,
    FailureKind.RATE_LIMITED: 503,
    FailureKind.AUTH_ERROR: 502,
    FailureKind.TRANSPORT_ERROR: 502,
}


class NpmPackageResponse(BaseModel):
    data: NpmPackageInfo


def get_npm(request: Request) -> NpmRegistryClient:
    return request.app.state.npm


@router.get(
    "/npmjs/{package_name:path}",
    response_model=NpmPackageResponse,
    responses={404: {"model": ErrorDetail}, 502: {"model": ErrorDetail}, 503: {"model": ErrorDetail}},
)
async def npm_package(
    package_name: str,
    latest: bool = Query(False, description="Only the latest version manifest."),
    npm: NpmRegistryClient = Depends(get_npm),
) -> NpmPackageResponse:
    """Package info for ``package_name``; scoped names (``@scope/pkg``) are accepted."""
    result = await (npm.get_package_latest(package_name) if latest else npm.get_package_info(package_name))
    if not result.ok:
        status = _FAILURE_STATUS.get(result.kind, 502)
        detail = "Package not found on npm" if status == 404 else f"npm registry unavailable: {result.kind.value}"
        raise HTTPException(status_code=status, detail=detail)
    return NpmPackageResponse(data=result.value)
