"""Aggregated package.json across every repository of the account."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from stackfolio.models.package import AggregatedDependencies
from stackfolio.services.dependency_aggregator import DependencyAggregationService, parse_policy

router = APIRouter()


def get_aggregator(request: Request) -> DependencyAggregationService:
    return request.app.state.dependency_aggregator


@router.get("/package.json", response_model=AggregatedDependencies)
async def aggregated_package_json(
    version: str = Query("max", description="min, max or minmax; anything else falls back to max."),
    service: DependencyAggregationService = Depends(get_aggregator),
) -> AggregatedDependencies:
    return await service.fetch_aggregated(parse_policy(version))


@router.get("/package.json/refresh")
async def refresh_package_json(
    version: str = Query("max"),
    service: DependencyAggregationService = Depends(get_aggregator),
):
    """Drop the cached aggregate for the policy, rebuild it, then redirect to it."""
    policy = parse_policy(version)
    await service.refresh(policy)
    return RedirectResponse(url=f"/package.json?version={policy.value}", status_code=307)
