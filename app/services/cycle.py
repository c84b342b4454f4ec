"""Per-key fetch, enrich and broadcast cycle."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from app.config import settings
from app.ingestors.adsb import ADSBClient, UpstreamError, haversine_nm, sanitize_aircraft, to_number
from app.models.aircraft import Aircraft
from app.models.stream import ErrorPayload, UpdatePayload
from app.services.enrichment import Enricher
from app.services.poller import PollerState

logger = logging.getLogger("nearsky.cycle")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _raw_entries(payload: dict) -> list:
    entries = payload.get("ac")
    return entries if isinstance(entries, list) else []


class FetchCycle:
    """One iteration of the poll loop for a :class:`PollerState`.

    Each step degrades on failure instead of aborting the iteration: a failed
    closest lookup still broadcasts the last known nearby list, and failed
    enrichment simply leaves fields empty.
    """

    def __init__(
        self,
        client: ADSBClient,
        enricher: Enricher,
        *,
        others_interval: float | None = None,
        others_limit: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.enricher = enricher
        self.others_interval = (
            settings.others_poll_interval if others_interval is None else others_interval
        )
        self.others_limit = settings.others_limit if others_limit is None else others_limit
        self._clock = clock

    async def __call__(self, state: PollerState) -> None:
        try:
            await self.run(state)
        except Exception as exc:
            logger.exception("Poll cycle failed for %s", state.key)
            await self._publish_degraded(state, exc)

    async def run(self, state: PollerState) -> None:
        try:
            payload = await self.client.fetch_closest(state.lat, state.lon, state.radius)
        except UpstreamError as exc:
            logger.warning("Closest lookup failed for %s: %s", state.key, exc)
            await self._publish_degraded(state, exc)
            return

        entries = _raw_entries(payload)
        nearest = sanitize_aircraft(entries[0]) if entries else None
        if nearest is not None:
            await self.enricher.enrich_nearest(nearest, state.lat, state.lon)

        if self._others_due(state):
            await self.refresh_others(state, nearest)

        state.last_nearest = nearest
        upstream_now = to_number(payload.get("now"))
        update = UpdatePayload(
            nearest=nearest,
            others=state.visible_others(self.others_limit),
            others_total=state.others_total,
            now=int(upstream_now) if upstream_now is not None else _now_ms(),
        )
        await state.broadcast("update", update.to_message())

    def _others_due(self, state: PollerState) -> bool:
        if state.last_others_fetch is None:
            return True
        return self._clock() - state.last_others_fetch >= self.others_interval

    def _distance(self, state: PollerState, aircraft: Aircraft) -> float:
        if aircraft.dst is not None:
            return aircraft.dst
        return haversine_nm(state.lat, state.lon, aircraft.lat, aircraft.lon)

    async def refresh_others(self, state: PollerState, nearest: Optional[Aircraft]) -> None:
        """Replace the cached nearby list; on failure the previous list is kept."""

        try:
            payload = await self.client.fetch_point(state.lat, state.lon, state.radius)
        except UpstreamError as exc:
            logger.warning("Nearby lookup failed for %s: %s", state.key, exc)
            return

        entries = _raw_entries(payload)
        others = [
            aircraft
            for aircraft in (sanitize_aircraft(entry) for entry in entries)
            if aircraft is not None and aircraft.has_position
        ]
        others.sort(key=lambda aircraft: self._distance(state, aircraft))
        if nearest is not None and nearest.hex:
            others = [aircraft for aircraft in others if aircraft.hex != nearest.hex]
        others = others[: self.others_limit]

        state.cached_others = others
        state.others_total = len(entries)
        state.last_others_fetch = self._clock()
        state.others_fetched_at = _now_ms()
        logger.debug(
            "Nearby list refreshed for %s: %s shown of %s", state.key, len(others), len(entries)
        )

        await self.enricher.enrich_batch(others, state.lat, state.lon)

    async def _publish_degraded(self, state: PollerState, exc: Exception) -> None:
        update = UpdatePayload(
            nearest=None,
            others=state.cached_others[: self.others_limit],
            others_total=state.others_total,
            now=_now_ms(),
        )
        await state.broadcast("update", update.to_message())

        if isinstance(exc, UpstreamError):
            error = ErrorPayload(message=str(exc), detail=exc.detail)
        else:
            error = ErrorPayload(message="Poll cycle failed", detail=str(exc) or None)
        await state.broadcast("error", error.to_message())


__all__ = ["FetchCycle"]
