#!/usr/bin/env python
"""
Run this to exercise the live adsb.lol client and enrichment without starting the server.

Usage (from repo root):
    python scripts/tests/run_adsb_live_test.py
"""

import asyncio

import httpx

from app.config import settings
from app.ingestors import ADSBClient, AirlineDirectory, sanitize_aircraft
from app.services import Enricher, TTLCache, TokenBucket


# Default location used by the server when clients omit coordinates
LAT = settings.default_lat
LON = settings.default_lon
RADIUS = settings.default_radius


async def main() -> None:
    async with httpx.AsyncClient(timeout=settings.adsb_timeout) as http_client:
        client = ADSBClient(http_client=http_client, limiter=TokenBucket(settings.max_requests_per_min))
        airlines = AirlineDirectory()
        await airlines.load(http_client)
        enricher = Enricher(
            client,
            callsign_cache=TTLCache("callsign"),
            routeset_cache=TTLCache("routeset"),
            airlines=airlines,
        )

        print(f"=== Live adsb.lol test for {LAT}, {LON} radius={RADIUS} ===\n")

        print("Requesting closest aircraft...")
        closest = await client.fetch_closest(LAT, LON, RADIUS)
        raw = closest.get("ac") or []
        nearest = sanitize_aircraft(raw[0]) if raw else None
        if nearest is None:
            print("\nNo aircraft in range.")
        else:
            await enricher.enrich_nearest(nearest, LAT, LON)
            print(nearest.model_dump(by_alias=True, exclude_none=True))

        print("\nRequesting nearby aircraft...")
        point = await client.fetch_point(LAT, LON, RADIUS)
        others = [a for a in map(sanitize_aircraft, point.get("ac") or []) if a is not None]
        print(f"Received {len(others)} aircraft. Showing a few:")
        for idx, a in enumerate(others[:5], start=1):
            print(
                f"{idx}. hex={a.hex!r}, flight={a.flight!r}, type={a.type!r}, "
                f"alt={a.alt_baro}, gs={a.gs}, dst={a.dst}"
            )

        print(f"\nTokens left: {client.limiter.stats()}")


if __name__ == "__main__":
    asyncio.run(main())
