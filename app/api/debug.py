"""Diagnostic endpoints for the shared pollers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["debug"])


@router.get("/__debug/pollers", summary="Inspect active pollers")
async def pollers(request: Request) -> dict[str, Any]:
    """Return per-key poller state and the remaining request budget."""

    registry = request.app.state.registry
    limiter = request.app.state.limiter
    return {"pollers": registry.snapshot(), "tokens": limiter.stats()}
