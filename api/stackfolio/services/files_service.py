"""Repository file trees for GET /files.

Directories become nested dicts keyed by entry name. Files become their text,
or a GitHub blob link for images, videos, large files, or every file when
``only_save_links`` is on.
"""

from __future__ import annotations

import asyncio
import html
import logging
from typing import Any, Optional

from stackfolio.adapters.ttl_cache import TTLCache
from stackfolio.services.github_client import GitHubClient

log = logging.getLogger(__name__)

FILES_CACHE_KEY = "files"
BINARY_SIZE_LIMIT = 1_000_000
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".svg", ".webp", ".ico", ".avif")
VIDEO_EXTENSIONS = (".mp4", ".webm", ".mov", ".avi", ".mkv", ".ogg")


def _has_extension(entry: dict[str, Any], extensions: tuple[str, ...]) -> bool:
    name = entry.get("name")
    return entry.get("type") == "file" and isinstance(name, str) and name.lower().endswith(extensions)


def is_image(entry: dict[str, Any]) -> bool:
    return _has_extension(entry, IMAGE_EXTENSIONS)


def is_video(entry: dict[str, Any]) -> bool:
    return _has_extension(entry, VIDEO_EXTENSIONS)


def is_other_binary(entry: dict[str, Any]) -> bool:
    return entry.get("type") == "file" and int(entry.get("size") or 0) > BINARY_SIZE_LIMIT


def blob_link(owner: str, repo: str, path: str, branch: str = "main") -> str:
    return f"https://github.com/{owner}/{repo}/blob/{branch}/{path}"


def lookup(tree: Any, path: str) -> Any:
    """Walk ``a/b/c`` through nested dicts; None when any segment is missing."""
    node = tree
    for segment in (part for part in path.split("/") if part):
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def tree_to_links(prefix: str, node: Any) -> str:
    """HTML list of links for one level of the tree."""
    if not isinstance(node, dict):
        return f"<pre>{html.escape(str(node))}</pre>"
    items = []
    for name in sorted(node):
        href = html.escape(f"{prefix.rstrip('/')}/{name}", quote=True)
        items.append(f'<li><a href="{href}">{html.escape(name)}</a></li>')
    return '<ul style="list-style: none; margin: 0; padding: 0;">' + "\n".join(items) + "</ul>"


class FilesService:
    def __init__(
        self,
        github: GitHubClient,
        cache: TTLCache,
        only_save_links: bool = False,
        max_concurrency: int = 8,
    ) -> None:
        self._github = github
        self._cache = cache
        self._only_save_links = only_save_links
        self._semaphore_width = max(1, int(max_concurrency))

    async def fetch_tree(self) -> dict[str, Any]:
        tree = await self._cache.get_or_load(FILES_CACHE_KEY, self._build_tree)
        return tree if tree is not None else {}

    async def refresh(self) -> dict[str, Any]:
        self._cache.delete(FILES_CACHE_KEY)
        return await self.fetch_tree()

    async def _build_tree(self) -> Optional[dict[str, Any]]:
        listing = await self._github.list_repositories("public")
        if not listing.ok:
            log.error("files_listing_failed kind=%s detail=%s", listing.kind, listing.detail)
            return None
        semaphore = asyncio.Semaphore(self._semaphore_width)
        repos = [repo for repo in listing.value or [] if isinstance(repo, dict) and repo.get("name")]

        async def _repo(repo: dict[str, Any]) -> Optional[dict[str, Any]]:
            owner = (repo.get("owner") or {}).get("login") or str(repo.get("full_name") or "/").split("/", 1)[0]
            branch = repo.get("default_branch") or "main"
            structure = await self._folder(semaphore, owner, repo["name"], branch, "")
            if structure is None:
                log.error("files_folder_structure_missing repo=%s/%s", owner, repo["name"])
            return structure

        structures = await asyncio.gather(*(_repo(repo) for repo in repos))
        return {repo["name"]: structure for repo, structure in zip(repos, structures) if structure is not None}

    async def _folder(
        self,
        semaphore: asyncio.Semaphore,
        owner: str,
        repo: str,
        branch: str,
        path: str,
    ) -> Optional[dict[str, Any]]:
        async with semaphore:
            listing = await self._github.get_contents(owner, repo, path)
        if not listing.ok or not isinstance(listing.value, list):
            return None
        entries = [entry for entry in listing.value if isinstance(entry, dict) and entry.get("name")]

        async def _entry(entry: dict[str, Any]) -> Any:
            if entry.get("type") == "dir":
                return await self._folder(semaphore, owner, repo, branch, entry["path"])
            if entry.get("type") == "file":
                return await self._file(semaphore, owner, repo, branch, entry)
            return None

        values = await asyncio.gather(*(_entry(entry) for entry in entries))
        return {entry["name"]: value for entry, value in zip(entries, values)}

    async def _file(
        self,
        semaphore: asyncio.Semaphore,
        owner: str,
        repo: str,
        branch: str,
        entry: dict[str, Any],
    ) -> Optional[str]:
        path = entry["path"]
        if self._only_save_links or is_image(entry) or is_video(entry) or is_other_binary(entry):
            return blob_link(owner, repo, path, branch)
        async with semaphore:
            content = await self._github.get_file_content(owner, repo, path)
        return content.value_or_none()
