"""ADS-B client for the adsb.lol REST API.

Every call goes through the shared :class:`~app.services.rate_limiter.TokenBucket`
so all pollers draw from the same outbound budget.
"""

from __future__ import annotations

import logging
import math
import time
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote

import httpx

from app.config import settings
from app.models.aircraft import Aircraft

if TYPE_CHECKING:
    from app.services.rate_limiter import TokenBucket

logger = logging.getLogger("nearsky.ingestors.adsb")

EARTH_RADIUS_NM = 3440.065


class UpstreamError(RuntimeError):
    """Raised when the upstream API is unreachable or answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def to_number(value: Any) -> float | None:
    """Coerce an upstream value to a finite float, or ``None``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def sanitize_aircraft(raw: Any) -> Optional[Aircraft]:
    """Map an untyped upstream aircraft entry onto :class:`Aircraft`."""

    if not isinstance(raw, dict):
        return None

    heading = to_number(raw.get("true_heading"))
    if heading is None:
        heading = to_number(raw.get("mag_heading"))

    return Aircraft(
        hex=_to_text(raw.get("hex")),
        flight=_to_text(raw.get("flight")) or "",
        reg=_to_text(raw.get("r")),
        type=_to_text(raw.get("t")) or _to_text(raw.get("type")),
        lat=to_number(raw.get("lat")),
        lon=to_number(raw.get("lon")),
        gs=to_number(raw.get("gs")),
        tas=to_number(raw.get("tas")),
        ias=to_number(raw.get("ias")),
        alt_baro=to_number(raw.get("alt_baro")),
        track=to_number(raw.get("track")),
        heading=heading,
        seen=to_number(raw.get("seen")),
        dst=to_number(raw.get("dst")),
        emergency=_to_text(raw.get("emergency")) or "none",
    )


def haversine_nm(
    lat1: float | None, lon1: float | None, lat2: float | None, lon2: float | None
) -> float:
    """Great-circle distance in nautical miles; infinite when a coordinate is unknown."""

    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return math.inf
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_NM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _segment(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return quote(str(value), safe="")


def _first_aircraft(payload: Any) -> dict | None:
    if not isinstance(payload, dict):
        return None
    entries = payload.get("ac")
    if isinstance(entries, list) and entries and isinstance(entries[0], dict):
        return entries[0]
    return None


class ADSBClient:
    """Rate-limited access to the closest, point, callsign and routeset endpoints."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        limiter: TokenBucket,
        base_url: str | None = None,
        log_outbound: bool | None = None,
    ) -> None:
        self.http_client = http_client
        self.limiter = limiter
        self.base_url = (base_url or settings.adsb_base_url).rstrip("/")
        self.log_outbound = settings.log_outbound if log_outbound is None else log_outbound

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request after taking a token from the shared budget."""

        await self.limiter.acquire()
        started = time.monotonic()
        if self.log_outbound:
            logger.info("OUT %s %s", method, url)
        try:
            response = await self.http_client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Upstream request timed out: %s %s", method, url)
            raise UpstreamError("Upstream request timed out", detail=str(exc)) from exc
        except httpx.RequestError as exc:
            logger.warning("Upstream request failed: %s %s: %s", method, url, exc)
            raise UpstreamError("Upstream request failed", detail=str(exc)) from exc

        if self.log_outbound:
            logger.info(
                "OUT-RESP status=%s took=%.0fms url=%s",
                response.status_code,
                (time.monotonic() - started) * 1000,
                url,
            )
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.request(method, f"{self.base_url}{path}", **kwargs)
        if response.status_code >= 400:
            raise UpstreamError(
                f"Upstream returned HTTP {response.status_code}",
                status_code=response.status_code,
                detail=response.text[:200],
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("Upstream returned invalid JSON", detail=str(exc)) from exc

    async def fetch_closest(self, lat: float, lon: float, radius: float) -> dict:
        """Return the raw ``/v2/closest`` payload for a point and radius."""

        payload = await self._json(
            "GET",
            f"/v2/closest/{_segment(lat)}/{_segment(lon)}/{_segment(radius)}",
            headers={"accept": "application/json"},
        )
        return payload if isinstance(payload, dict) else {}

    async def fetch_point(self, lat: float, lon: float, radius: float) -> dict:
        """Return the raw ``/v2/point`` payload listing every aircraft in range."""

        payload = await self._json(
            "GET",
            f"/v2/point/{_segment(lat)}/{_segment(lon)}/{_segment(radius)}",
            headers={"accept": "application/json"},
        )
        return payload if isinstance(payload, dict) else {}

    async def fetch_callsign(self, callsign: str) -> dict | None:
        """Return the first aircraft entry reported for ``callsign``, if any."""

        payload = await self._json(
            "GET",
            f"/v2/callsign/{_segment(callsign)}",
            headers={"accept": "application/json"},
        )
        return _first_aircraft(payload)

    async def fetch_routeset(self, planes: list[dict[str, Any]]) -> list[dict]:
        """Resolve routes for a batch of ``{callsign, lat, lng}`` planes."""

        payload = await self._json(
            "POST",
            "/api/0/routeset",
            json={"planes": planes},
            headers={"accept": "application/json"},
        )
        if not isinstance(payload, list):
            return []
        return [route for route in payload if isinstance(route, dict)]


__all__ = [
    "ADSBClient",
    "UpstreamError",
    "haversine_nm",
    "sanitize_aircraft",
    "to_number",
]
