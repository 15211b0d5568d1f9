"""Accept-header negotiation between HTML and JSON."""

from __future__ import annotations

from fastapi import HTTPException, Request

_HTML_TYPES = {"text/html", "text/*", "*/*"}
_JSON_TYPES = {"application/json", "application/*"}


def _media_types(accept: str) -> list[str]:
    types = []
    for part in accept.split(","):
        media, _, params = part.partition(";")
        media = media.strip().lower()
        if not media:
            continue
        if "q=0" in params.replace(" ", "") and "q=0." not in params.replace(" ", ""):
            continue
        types.append(media)
    return types


def wants_html(request: Request) -> bool:
    """True for HTML, False for JSON; 406 when the client accepts neither.

    An explicit ``application/json`` without ``text/html`` wins over wildcards.
    """
    types = _media_types(request.headers.get("accept") or "*/*")
    if "application/json" in types and "text/html" not in types:
        return False
    if any(media in _HTML_TYPES for media in types):
        return True
    if any(media in _JSON_TYPES for media in types):
        return False
    raise HTTPException(status_code=406, detail="Not Acceptable")
