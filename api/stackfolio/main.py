from __future__ import annotations

import logging
import os
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from stackfolio.adapters.ttl_cache import TTLCache
from stackfolio.config import Settings, env_flag, load_settings
from stackfolio.routers import files, health, npmjs, packages, platforms, repos
from stackfolio.services.dependency_aggregator import DependencyAggregationService
from stackfolio.services.deployment_matcher import DeploymentLinkService
from stackfolio.services.deployment_platforms import build_platform_clients
from stackfolio.services.files_service import FilesService
from stackfolio.services.github_client import GitHubClient
from stackfolio.services.npm_client import NpmRegistryClient
from stackfolio.services.repository_assembler import RepositoryAssembler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
RUNTIME_HEADER = "x-stackfolio-runtime-ms"

logger = logging.getLogger("stackfolio.api.slow")
log = logging.getLogger(__name__)

INDEX_LINKS = (
    ("/repos", "Public repositories"),
    ("/repos/all", "All repositories"),
    ("/repos/enhanced", "Enhanced repositories"),
    ("/package.json?version=min", "package.json (min versions)"),
    ("/package.json?version=max", "package.json (max versions)"),
    ("/package.json?version=minmax", "package.json (min - max ranges)"),
    ("/netlify", "Netlify sites"),
    ("/vercel", "Vercel projects"),
    ("/render", "Render services"),
    ("/files", "Files"),
    ("/health", "Health"),
    ("/docs", "API docs"),
)


def configure_logging(settings: Settings) -> None:
    """StreamHandler on the ``stackfolio`` logger, plus a file when LOG_FILE is set."""
    root = logging.getLogger("stackfolio")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        if settings.log_file:
            file_handler = logging.FileHandler(settings.log_file)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(file_handler)
    root.propagate = False
    root.setLevel(getattr(logging, settings.log_level, logging.INFO))


def _client_identity(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",", 1)[0].strip()
    remote = request.client.host if request.client and request.client.host else ""
    if remote:
        return remote
    return "unknown"


def _correlation_id(request: Request) -> str:
    for key in (
        "x-request-id",
        "x-vercel-id",
        "x-amzn-trace-id",
        "cf-ray",
    ):
        value = request.headers.get(key)
        if value:
            return value
    return "none"


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return str(getattr(route, "path", "") or "") or request.url.path


def _index_html() -> str:
    items = "\n".join(f'<li><a href="{href}">{label}</a></li>' for href, label in INDEX_LINKS)
    return f'<h1>stackfolio</h1>\n<ul style="list-style: none; margin: 0; padding: 0;">{items}</ul>'


def _wire_services(app: FastAPI, settings: Settings) -> None:
    """Build clients, caches and services once and keep them on ``app.state``."""
    github = GitHubClient(
        token=settings.github_token,
        base_url=settings.github_api_url,
        username=settings.github_username,
        timeout=settings.http_timeout_seconds,
    )
    npm = NpmRegistryClient(settings.npm_registry_url, timeout=settings.http_timeout_seconds)
    platform_clients = build_platform_clients(settings)

    caches = {
        "packages": TTLCache("packages", settings.package_cache_ttl_seconds),
        "files": TTLCache("files", settings.files_cache_ttl_seconds),
        "platforms": TTLCache("platforms", settings.platform_cache_ttl_seconds),
        "repositories": TTLCache("repositories", settings.repository_cache_ttl_seconds),
    }
    deployment_links = DeploymentLinkService(platform_clients, caches["platforms"])

    app.state.settings = settings
    app.state.caches = caches
    app.state.github = github
    app.state.npm = npm
    app.state.platform_clients = platform_clients
    app.state.deployment_links = deployment_links
    app.state.dependency_aggregator = DependencyAggregationService(
        github, caches["packages"], max_concurrency=settings.manifest_fetch_concurrency
    )
    app.state.assembler = RepositoryAssembler(
        github,
        npm,
        deployment_links,
        cache=caches["repositories"],
        max_concurrency=settings.enhanced_repo_concurrency,
    )
    app.state.files = FilesService(
        github,
        caches["files"],
        only_save_links=settings.only_save_links,
        max_concurrency=settings.manifest_fetch_concurrency,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)

    app = FastAPI(title="Stackfolio API", version=health.HEALTH_VERSION)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _wire_services(app, settings)

    @app.get("/", include_in_schema=False)
    async def root():
        return HTMLResponse(_index_html())

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        log.error(
            "unhandled_exception method=%s path=%s correlation_id=%s",
            request.method,
            request.url.path,
            _correlation_id(request),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    @app.middleware("http")
    async def log_slow_requests(request: Request, call_next):
        start = time.perf_counter()
        status_code: Optional[int] = None
        exc_name: Optional[str] = None
        try:
            response = await call_next(request)
            status_code = response.status_code
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            response.headers[RUNTIME_HEADER] = f"{elapsed_ms:.2f}"
            return response
        except Exception as exc:
            status_code = 500
            exc_name = exc.__class__.__name__
            raise
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            if elapsed_ms >= settings.slow_request_ms or (status_code or 500) >= 500 or env_flag("API_LOG_ALL_REQUESTS"):
                logger.warning(
                    "slow_request method=%s path=%s raw_path=%s status=%s elapsed_ms=%.2f client=%s correlation_id=%s exc=%s",
                    request.method,
                    _route_path(request),
                    request.url.path,
                    status_code,
                    elapsed_ms,
                    _client_identity(request),
                    _correlation_id(request),
                    exc_name or "none",
                )

    app.include_router(health.router, tags=["health"])
    app.include_router(repos.router, tags=["repos"])
    app.include_router(packages.router, tags=["packages"])
    app.include_router(platforms.router, tags=["platforms"])
    app.include_router(npmjs.router, tags=["npm"])
    app.include_router(files.router, tags=["files"])
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "stackfolio.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=env_flag("RELOAD"),
    )
