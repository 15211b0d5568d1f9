"""GitHub REST client.

Async wrapper with:
- optional token auth (GITHUB_TOKEN)
- explicit per-call timeout; expiry is a transport failure
- basic ETag conditional requests + in-memory response cache
- tagged results: 404 is ``not_found``, never an exception

Rate limits are logged and reported as ``rate_limited``; the client does not
sleep until reset because it runs inside request handlers.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from stackfolio.models.result import FailureKind, FetchResult

log = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


def _rate_limit_exhausted(r: httpx.Response) -> bool:
    if r.status_code == 429:
        return True
    return r.status_code == 403 and r.headers.get("X-RateLimit-Remaining") == "0"


class GitHubClient:
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        username: Optional[str] = None,
        user_agent: str = "stackfolio/1.0",
        timeout: float = 15.0,
        retry_delay: float = 0.2,
    ) -> None:
        self._token = (token or "").strip() or None
        self._base_url = base_url.rstrip("/")
        self.username = username
        self._timeout = timeout
        self._retry_delay = retry_delay
        self._headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            self._headers["Authorization"] = f"Bearer {self._token}"

        # Per-process caches (good enough for the API process lifetime)
        self._etag_by_url: dict[str, str] = {}
        self._json_cache_by_url: dict[str, Any] = {}

    async def _request(self, url: str, headers: dict[str, str]) -> httpx.Response:
        h = dict(self._headers)
        h.update(headers)
        async with httpx.AsyncClient(timeout=self._timeout, headers=h) as client:
            attempt = 1
            r = await client.get(url)
            log.info("github_api url=%s status=%s attempt=%d", url, r.status_code, attempt)
            # Transient upstream errors are retried; everything else is final.
            while r.status_code >= 500 and attempt < MAX_ATTEMPTS:
                await asyncio.sleep(self._retry_delay * float(attempt))
                attempt += 1
                r = await client.get(url)
                log.info("github_api url=%s status=%s attempt=%d", url, r.status_code, attempt)
        return r

    async def get_json(self, path: str) -> FetchResult[Any]:
        """GET JSON for a path or full URL. Uses ETag conditional requests when possible."""
        url = path if path.startswith("http") else f"{self._base_url}{path}"

        extra_headers: dict[str, str] = {}
        etag = self._etag_by_url.get(url)
        if etag and url in self._json_cache_by_url:
            extra_headers["If-None-Match"] = etag

        try:
            r = await self._request(url, extra_headers)
        except httpx.HTTPError as exc:
            log.warning("github_api_transport_error url=%s error=%s", url, exc)
            return FetchResult.failure(FailureKind.TRANSPORT_ERROR, f"{exc.__class__.__name__}: {exc}")

        if r.status_code == 304:
            return FetchResult.success(self._json_cache_by_url[url])
        if r.status_code == 202:
            # Statistics endpoints answer 202 while GitHub computes them.
            return FetchResult.failure(FailureKind.NOT_FOUND, "statistics are being computed", 202)
        if r.status_code == 404:
            return FetchResult.failure(FailureKind.NOT_FOUND, f"{url} not found", 404)
        if _rate_limit_exhausted(r):
            log.warning(
                "github_api_rate_limited url=%s reset=%s",
                url,
                r.headers.get("X-RateLimit-Reset"),
            )
            return FetchResult.failure(FailureKind.RATE_LIMITED, "GitHub API rate limit exceeded", r.status_code)
        if r.status_code in {401, 403}:
            log.error("github_api_auth_error url=%s status=%s", url, r.status_code)
            return FetchResult.failure(FailureKind.AUTH_ERROR, r.text[:200], r.status_code)
        if r.status_code >= 400:
            log.error("github_api_error url=%s status=%s body=%s", url, r.status_code, r.text[:200])
            return FetchResult.failure(
                FailureKind.TRANSPORT_ERROR,
                f"GitHub API error {r.status_code}: {r.text[:200]}",
                r.status_code,
            )

        try:
            data = r.json()
        except ValueError:
            log.warning("github_api_invalid_json url=%s", url)
            return FetchResult.failure(FailureKind.TRANSPORT_ERROR, "invalid JSON from GitHub", r.status_code)

        new_etag = r.headers.get("ETag")
        if new_etag:
            self._etag_by_url[url] = new_etag
            self._json_cache_by_url[url] = data
        return FetchResult.success(data)

    async def list_repositories(self, visibility: str = "public") -> FetchResult[list[dict]]:
        """Repositories of the authenticated user; ``visibility`` is the ``type`` filter."""
        result = await self.get_json(f"/user/repos?type={quote(visibility)}&per_page=100")
        if result.ok and not isinstance(result.value, list):
            return FetchResult.failure(FailureKind.TRANSPORT_ERROR, "unexpected repository listing shape")
        return result

    async def get_repo_metadata(self, owner: str, repo: str) -> FetchResult[dict]:
        return await self.get_json(f"/repos/{owner}/{repo}")

    async def get_contents(self, owner: str, repo: str, path: str = "") -> FetchResult[Any]:
        """Raw contents API payload: a list for directories, a dict for files."""
        return await self.get_json(f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}")

    async def get_file_content(self, owner: str, repo: str, path: str) -> FetchResult[str]:
        """Decoded UTF-8 text of one file."""
        result = await self.get_contents(owner, repo, path)
        if not result.ok:
            return result
        return _decode_content(result.value, f"{owner}/{repo}/{path}")

    async def get_readme(self, owner: str, repo: str) -> FetchResult[str]:
        result = await self.get_json(f"/repos/{owner}/{repo}/readme")
        if not result.ok:
            return result
        return _decode_content(result.value, f"{owner}/{repo}/README")

    async def get_languages(self, owner: str, repo: str) -> FetchResult[dict]:
        return await self.get_json(f"/repos/{owner}/{repo}/languages")

    async def get_commit_activity(self, owner: str, repo: str) -> FetchResult[list]:
        return await self.get_json(f"/repos/{owner}/{repo}/stats/commit_activity")

    async def get_contributor_stats(self, owner: str, repo: str) -> FetchResult[list]:
        return await self.get_json(f"/repos/{owner}/{repo}/stats/contributors")

    async def get_code_frequency(self, owner: str, repo: str) -> FetchResult[list]:
        return await self.get_json(f"/repos/{owner}/{repo}/stats/code_frequency")

    async def get_participation(self, owner: str, repo: str) -> FetchResult[dict]:
        return await self.get_json(f"/repos/{owner}/{repo}/stats/participation")

    async def get_releases(self, owner: str, repo: str, limit: int = 10) -> FetchResult[list]:
        return await self.get_json(f"/repos/{owner}/{repo}/releases?per_page={_per_page(limit)}")

    async def get_workflows(self, owner: str, repo: str) -> FetchResult[list]:
        result = await self.get_json(f"/repos/{owner}/{repo}/actions/workflows")
        return _unwrap(result, "workflows")

    async def get_workflow_runs(self, owner: str, repo: str, limit: int = 10) -> FetchResult[list]:
        result = await self.get_json(f"/repos/{owner}/{repo}/actions/runs?per_page={_per_page(limit)}")
        return _unwrap(result, "workflow_runs")

    async def get_deployments(self, owner: str, repo: str, limit: int = 10) -> FetchResult[list]:
        return await self.get_json(f"/repos/{owner}/{repo}/deployments?per_page={_per_page(limit)}")


def _per_page(limit: int) -> int:
    return max(1, min(int(limit), 100))


def _unwrap(result: FetchResult[Any], key: str) -> FetchResult[list]:
    if not result.ok:
        return result
    rows = result.value.get(key) if isinstance(result.value, dict) else None
    if not isinstance(rows, list):
        return FetchResult.failure(FailureKind.TRANSPORT_ERROR, f"response has no '{key}' list")
    return FetchResult.success(rows)


def _decode_content(data: Any, label: str) -> FetchResult[str]:
    if not isinstance(data, dict) or not isinstance(data.get("content"), str):
        return FetchResult.failure(FailureKind.NOT_FOUND, f"{label} is not a file")
    if data.get("encoding", "base64") != "base64":
        return FetchResult.failure(FailureKind.TRANSPORT_ERROR, f"{label} has unsupported encoding")
    try:
        decoded = base64.b64decode(data["content"].encode("utf-8"), validate=False)
        return FetchResult.success(decoded.decode("utf-8"))
    except (ValueError, UnicodeDecodeError, binascii.Error):
        log.warning("github_content_decode_failed file=%s", label)
        return FetchResult.failure(FailureKind.TRANSPORT_ERROR, f"{label} could not be decoded")
