"""Browse file trees of the account's public repositories."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from stackfolio.models.error import ErrorDetail
from stackfolio.routers.negotiation import wants_html
from stackfolio.services.files_service import FilesService, lookup, tree_to_links

router = APIRouter()


def get_files(request: Request) -> FilesService:
    return request.app.state.files


def _render(request: Request, prefix: str, node: Any):
    if wants_html(request):
        return HTMLResponse(tree_to_links(prefix, node))
    return node


@router.get("/files", responses={406: {"model": ErrorDetail}})
async def files_root(request: Request, service: FilesService = Depends(get_files)):
    """Repository names as links (HTML) or the whole tree (JSON)."""
    return _render(request, "/files", await service.fetch_tree())


# Registered before the catch-all path route below.
@router.get("/files/refresh")
async def files_refresh(service: FilesService = Depends(get_files)):
    await service.refresh()
    return RedirectResponse(url="/files", status_code=307)


@router.get("/files/{path:path}", responses={404: {"model": ErrorDetail}, 406: {"model": ErrorDetail}})
async def files_path(path: str, request: Request, service: FilesService = Depends(get_files)):
    node = lookup(await service.fetch_tree(), path)
    if node is None:
        raise HTTPException(status_code=404, detail="File or directory not found")
    return _render(request, f"/files/{path.strip('/')}", node)
