from __future__ import annotations

import asyncio
import contextlib
import logging
import time

import httpx
from fastapi import FastAPI, Request

from app.api import api_router
from app.config import settings
from app.ingestors import ADSBClient, AirlineDirectory
from app.services import (
    Enricher,
    FetchCycle,
    PollerRegistry,
    SubscriptionManager,
    TTLCache,
    TokenBucket,
)

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("nearsky")

USER_AGENT = "nearsky-backend/1.0"


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared poller components and tear them down on shutdown."""

    # ----- Startup logic -----
    app.state.http_client = httpx.AsyncClient(
        timeout=settings.adsb_timeout,
        headers={"user-agent": USER_AGENT},
    )
    app.state.limiter = TokenBucket(settings.max_requests_per_min)
    app.state.adsb_client = ADSBClient(
        http_client=app.state.http_client,
        limiter=app.state.limiter,
    )
    app.state.airlines = AirlineDirectory()
    enricher = Enricher(
        app.state.adsb_client,
        callsign_cache=TTLCache("callsign"),
        routeset_cache=TTLCache("routeset"),
        airlines=app.state.airlines,
    )
    cycle = FetchCycle(app.state.adsb_client, enricher)
    app.state.registry = PollerRegistry(cycle)
    app.state.subscriptions = SubscriptionManager.from_settings(app.state.registry)

    if settings.load_airline_maps:
        # best effort; pollers fall back to bare carrier codes until this lands
        app.state.airlines_task = asyncio.create_task(
            app.state.airlines.load(app.state.http_client)
        )

    logger.info(
        "Poller service ready: poll=%ss others=%ss others_limit=%s max_req_per_min=%s",
        settings.poll_interval,
        settings.others_poll_interval,
        settings.others_limit,
        settings.max_requests_per_min,
    )

    try:
        yield
    finally:
        # ----- Shutdown logic -----
        app.state.registry.shutdown()

        task = getattr(app.state, "airlines_task", None)
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await app.state.http_client.aclose()


app = FastAPI(title="NearSky Backend", lifespan=lifespan)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log basic request information for observability."""

    start_time = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "HTTP %s %s -> %s (%.2f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.include_router(api_router)


@app.get("/", summary="Root")
def read_root() -> dict[str, str]:
    """Basic root endpoint for quick verification."""

    return {"message": "NearSky backend is running"}
