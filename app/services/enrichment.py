"""Fill-only enrichment of sanitized aircraft with callsign and route metadata."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from app.config import settings
from app.ingestors.adsb import ADSBClient, UpstreamError
from app.ingestors.airlines import AirlineDirectory
from app.models.aircraft import Aircraft, AirportInfo
from app.services.concurrency import run_bounded
from app.services.ttl_cache import TTLCache

logger = logging.getLogger("nearsky.enrichment")

_TYPE_CODE_RE = re.compile(r"[^A-Z0-9_-]")


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first_text(source: dict, *keys: str) -> str | None:
    for key in keys:
        value = _text(source.get(key))
        if value:
            return value
    return None


def merge_callsign(aircraft: Aircraft, info: dict) -> None:
    """Fill gaps in ``aircraft`` from a callsign lookup result."""

    if aircraft.airline is None:
        aircraft.airline = _first_text(info, "airline", "operator")
    if aircraft.origin is None:
        aircraft.origin = _first_text(info, "from", "o", "origin")
    if aircraft.destination is None:
        aircraft.destination = _first_text(info, "to", "d", "destination")
    if aircraft.reg is None:
        aircraft.reg = _text(info.get("r"))


def airport_from_route(entry: Any) -> Optional[AirportInfo]:
    if not isinstance(entry, dict):
        return None
    return AirportInfo(
        city=_text(entry.get("location")),
        name=_text(entry.get("name")),
        iata=_first_text(entry, "iata", "icao") or "",
        countryiso=_text(entry.get("countryiso2")) or "",
    )


def merge_route(aircraft: Aircraft, route: dict, airlines: AirlineDirectory) -> None:
    """Fill gaps in ``aircraft`` from a routeset entry."""

    code = _text(route.get("airline_code"))
    if code and aircraft.airline is None:
        aircraft.airline = airlines.describe(code)

    airports = route.get("_airports")
    if not isinstance(airports, list):
        return
    if aircraft.from_obj is None and len(airports) > 0:
        aircraft.from_obj = airport_from_route(airports[0])
    if aircraft.to_obj is None and len(airports) > 1:
        aircraft.to_obj = airport_from_route(airports[1])


def thumbnail_for(type_code: str | None) -> str | None:
    """Return the proxied thumbnail path for an ICAO type code."""

    if not type_code:
        return None
    code = _TYPE_CODE_RE.sub("", type_code.strip().upper())
    if not code:
        return None
    return f"/api/docimg/{code}.jpg"


class Enricher:
    """Look up callsign and route metadata through the shared caches."""

    def __init__(
        self,
        client: ADSBClient,
        *,
        callsign_cache: TTLCache[dict],
        routeset_cache: TTLCache[dict],
        airlines: AirlineDirectory,
        callsign_ttl: float | None = None,
        routeset_ttl: float | None = None,
        concurrency: int | None = None,
    ) -> None:
        self.client = client
        self.callsign_cache = callsign_cache
        self.routeset_cache = routeset_cache
        self.airlines = airlines
        self.callsign_ttl = settings.callsign_ttl if callsign_ttl is None else callsign_ttl
        self.routeset_ttl = settings.routeset_ttl if routeset_ttl is None else routeset_ttl
        self.concurrency = settings.enrich_concurrency if concurrency is None else concurrency

    async def lookup_callsign(self, callsign: str) -> dict | None:
        cached = self.callsign_cache.get(callsign)
        if cached is not None:
            return cached

        try:
            info = await self.client.fetch_callsign(callsign)
        except UpstreamError as exc:
            logger.debug("Callsign lookup failed for %s: %s", callsign, exc)
            return None

        # another lookup may have filled the entry while we waited
        cached = self.callsign_cache.get(callsign)
        if cached is not None:
            return cached
        if info:
            self.callsign_cache.set(callsign, info, self.callsign_ttl)
        return info

    async def lookup_routes(
        self, aircraft: list[Aircraft], base_lat: float, base_lon: float
    ) -> dict[str, dict]:
        """Resolve routes for ``aircraft`` in one batched request, caching each result."""

        planes = [
            {
                "callsign": item.flight,
                "lat": item.lat if item.lat is not None else base_lat,
                "lng": item.lon if item.lon is not None else base_lon,
            }
            for item in aircraft
        ]
        try:
            routes = await self.client.fetch_routeset(planes)
        except UpstreamError as exc:
            logger.debug("Routeset lookup failed for %s planes: %s", len(planes), exc)
            return {}

        resolved: dict[str, dict] = {}
        for route in routes:
            callsign = _text(route.get("callsign"))
            if not callsign:
                continue
            self.routeset_cache.set(callsign, route, self.routeset_ttl)
            resolved[callsign] = route
        return resolved

    async def enrich_nearest(self, aircraft: Aircraft, base_lat: float, base_lon: float) -> None:
        if aircraft.flight:
            info = await self.lookup_callsign(aircraft.flight)
            if info:
                merge_callsign(aircraft, info)

            if not aircraft.route_complete:
                route = self.routeset_cache.get(aircraft.flight)
                if route is None:
                    resolved = await self.lookup_routes([aircraft], base_lat, base_lon)
                    route = resolved.get(aircraft.flight)
                if route:
                    merge_route(aircraft, route, self.airlines)

        if aircraft.thumb is None:
            aircraft.thumb = thumbnail_for(aircraft.type)

    async def enrich_batch(
        self, aircraft: list[Aircraft], base_lat: float, base_lon: float
    ) -> None:
        """Enrich a list of nearby aircraft in place."""

        with_flight = [item for item in aircraft if item.flight]
        if not with_flight:
            return

        misses: list[Aircraft] = []
        for item in with_flight:
            cached = self.callsign_cache.get(item.flight)
            if cached is not None:
                merge_callsign(item, cached)
            else:
                misses.append(item)

        async def fetch(item: Aircraft, _index: int) -> dict | None:
            return await self.lookup_callsign(item.flight)

        results = await run_bounded(misses, fetch, self.concurrency)
        for item, result in zip(misses, results):
            if isinstance(result, dict):
                merge_callsign(item, result)

        pending: list[Aircraft] = []
        for item in with_flight:
            if item.route_complete:
                continue
            route = self.routeset_cache.get(item.flight)
            if route is not None:
                merge_route(item, route, self.airlines)
            else:
                pending.append(item)

        if pending:
            resolved = await self.lookup_routes(pending, base_lat, base_lon)
            for item in pending:
                route = resolved.get(item.flight)
                if route:
                    merge_route(item, route, self.airlines)


__all__ = [
    "Enricher",
    "airport_from_route",
    "merge_callsign",
    "merge_route",
    "thumbnail_for",
]
