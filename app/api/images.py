"""Aircraft type thumbnail proxy."""

from __future__ import annotations

import logging
import re
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, Response

from app.config import settings
from app.ingestors.adsb import ADSBClient, UpstreamError

router = APIRouter(prefix="/api", tags=["images"])

logger = logging.getLogger("nearsky.images")

_CODE_RE = re.compile(r"[^A-Za-z0-9_-]")
CACHE_CONTROL = "public, max-age=86400, stale-while-revalidate=3600"


@router.get("/docimg/{code}.jpg", summary="Proxy an aircraft type image")
async def docimg(code: str, request: Request) -> Response:
    """Fetch a doc8643 type image through the shared request budget."""

    cleaned = _CODE_RE.sub("", code).upper()
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="bad code")

    client: ADSBClient = request.app.state.adsb_client
    remote = f"{settings.docimg_base_url.rstrip('/')}/{quote(cleaned)}.jpg"
    try:
        upstream = await client.request("GET", remote, follow_redirects=True)
    except UpstreamError as exc:
        logger.error("Image proxy failed for %s: %s", cleaned, exc)
        return PlainTextResponse("proxy error", status_code=status.HTTP_502_BAD_GATEWAY)

    if upstream.status_code >= 400:
        return PlainTextResponse(
            f"Upstream returned {upstream.status_code}: {upstream.text[:200]}",
            status_code=upstream.status_code,
        )

    return Response(
        content=upstream.content,
        media_type=upstream.headers.get("content-type", "image/jpeg"),
        headers={"Cache-Control": CACHE_CONTROL},
    )
