"""Health and version endpoints."""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

router = APIRouter()

HEALTH_VERSION = "1.0.0"
SERVICE_STARTED_AT = datetime.now(timezone.utc)


def _iso_utc(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _uptime_seconds(now: datetime) -> int:
    return max(0, int((now - SERVICE_STARTED_AT).total_seconds()))


def _uptime_human(seconds: int) -> str:
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m {secs}s"
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class HealthResponse(BaseModel):
    """GET /health and GET /ready response."""

    model_config = ConfigDict(extra="forbid")
    status: Annotated[str, Field(description="'ok' or 'ready'")]
    version: Annotated[str, Field(description="Semver MAJOR.MINOR.PATCH")]
    timestamp: Annotated[str, Field(description="ISO8601 UTC")]
    started_at: Annotated[str, Field(description="ISO8601 UTC when service process started")]
    uptime_seconds: Annotated[int, Field(description="Seconds service has been up")]
    uptime_human: Annotated[str, Field(description="Human readable uptime")]
    platforms_configured: Annotated[
        dict[str, bool], Field(description="Whether each deployment platform has a token")
    ]


def _health(request: Request, status: str) -> HealthResponse:
    now = datetime.now(timezone.utc)
    up = _uptime_seconds(now)
    clients = getattr(request.app.state, "platform_clients", {}) or {}
    return HealthResponse(
        status=status,
        version=HEALTH_VERSION,
        timestamp=_iso_utc(now),
        started_at=_iso_utc(SERVICE_STARTED_AT),
        uptime_seconds=up,
        uptime_human=_uptime_human(up),
        platforms_configured={name: client.configured for name, client in clients.items()},
    )


@router.get("/version")
async def version():
    """Return API version (lightweight, for dashboards)."""
    return {"version": HEALTH_VERSION}


@router.get("/ready", response_model=HealthResponse)
async def ready(request: Request):
    """Readiness probe. 200 once the upstream clients are wired."""
    if getattr(request.app.state, "github", None) is None:
        raise HTTPException(status_code=503, detail="not ready")
    return _health(request, "ready")


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Return API health status."""
    return _health(request, "ok")
