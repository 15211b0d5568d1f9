"""Environment-driven settings.

Values come from the process environment, optionally seeded from a ``.env``
file next to the working directory (python-dotenv). Numeric settings are
clamped; malformed values fall back to their defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

ONE_HOUR = 60 * 60
ONE_WEEK = 7 * 24 * ONE_HOUR
ONE_MONTH = 4 * ONE_WEEK


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_optional(*names: str) -> Optional[str]:
    for name in names:
        raw = (os.getenv(name) or "").strip()
        if raw:
            return raw
    return None


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "1" if default else "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else default
    except ValueError:
        value = default
    return max(minimum, min(value, maximum))


def _env_float(name: str, default: float, minimum: float, maximum: float) -> float:
    raw = (os.getenv(name) or "").strip()
    try:
        value = float(raw) if raw else default
    except ValueError:
        value = default
    return max(minimum, min(value, maximum))


@dataclass(frozen=True)
class Settings:
    github_username: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    github_token: Optional[str] = None
    netlify_api_url: str = "https://api.netlify.com/api/v1"
    netlify_token: Optional[str] = None
    vercel_api_url: str = "https://api.vercel.com"
    vercel_token: Optional[str] = None
    render_api_url: str = "https://api.render.com/v1"
    render_token: Optional[str] = None
    npm_registry_url: str = "https://registry.npmjs.org"
    http_timeout_seconds: float = 15.0
    enhanced_repo_concurrency: int = 4
    manifest_fetch_concurrency: int = 8
    only_save_links: bool = False
    allowed_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"
    log_file: Optional[str] = None
    slow_request_ms: float = 1500.0
    package_cache_ttl_seconds: int = ONE_WEEK
    files_cache_ttl_seconds: int = ONE_MONTH
    platform_cache_ttl_seconds: int = ONE_HOUR
    repository_cache_ttl_seconds: int = 600


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment (and ``env_file`` / ``.env`` when present)."""
    load_dotenv(env_file)
    origins = _env_str("ALLOWED_ORIGINS", "http://localhost:3000")
    return Settings(
        github_username=_env_optional("GITHUB_USERNAME", "USERNAME"),
        github_api_url=_env_str("GITHUB_API_URL", "https://api.github.com").rstrip("/"),
        github_token=_env_optional("GITHUB_TOKEN", "GH_TOKEN"),
        netlify_api_url=_env_str("NETLIFY_API_URL", "https://api.netlify.com/api/v1").rstrip("/"),
        netlify_token=_env_optional("NETLIFY_TOKEN"),
        vercel_api_url=_env_str("VERCEL_API_URL", "https://api.vercel.com").rstrip("/"),
        vercel_token=_env_optional("VERCEL_TOKEN"),
        render_api_url=_env_str("RENDER_API_URL", "https://api.render.com/v1").rstrip("/"),
        render_token=_env_optional("RENDER_TOKEN"),
        npm_registry_url=_env_str("NPM_REGISTRY_URL", "https://registry.npmjs.org").rstrip("/"),
        http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 15.0, 1.0, 120.0),
        enhanced_repo_concurrency=_env_int("ENHANCED_REPO_CONCURRENCY", 4, 1, 32),
        manifest_fetch_concurrency=_env_int("MANIFEST_FETCH_CONCURRENCY", 8, 1, 64),
        only_save_links=env_flag("ONLY_SAVE_LINKS", False),
        allowed_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        log_file=_env_optional("LOG_FILE"),
        slow_request_ms=_env_float("API_SLOW_REQUEST_MS", 1500.0, 25.0, 600000.0),
        package_cache_ttl_seconds=_env_int("PACKAGE_CACHE_TTL_SECONDS", ONE_WEEK, 0, 10 * ONE_MONTH),
        files_cache_ttl_seconds=_env_int("FILES_CACHE_TTL_SECONDS", ONE_MONTH, 0, 10 * ONE_MONTH),
        platform_cache_ttl_seconds=_env_int("PLATFORM_CACHE_TTL_SECONDS", ONE_HOUR, 0, ONE_WEEK),
        repository_cache_ttl_seconds=_env_int("REPOSITORY_CACHE_TTL_SECONDS", 600, 0, ONE_WEEK),
    )
