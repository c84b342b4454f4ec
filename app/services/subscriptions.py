"""Bind each connection to exactly one shared poller."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Optional

from app.config import settings
from app.ingestors.adsb import to_number
from app.models.stream import UpdatePayload
from app.services.poller import PollerRegistry, Subscriber

logger = logging.getLogger("nearsky.subscriptions")

KEY_PRECISION = 3  # ~111 m


def _quantize(value: float, places: int = KEY_PRECISION) -> str:
    # round half up, matching the browser client's Math.round
    scale = 10**places
    return f"{math.floor(value * scale + 0.5) / scale:.{places}f}"


def _in_range(value: float | None, bound: float) -> float | None:
    if value is None or not -bound <= value <= bound:
        return None
    return value


def _format_radius(radius: float) -> str:
    radius = float(radius)
    return str(int(radius)) if radius.is_integer() else repr(radius)


def make_key(lat: float, lon: float, radius: float) -> str:
    """Return the GeoKey shared by every request within the same ~111 m cell."""

    return f"{_quantize(lat)}_{_quantize(lon)}_{_format_radius(radius)}"


class SubscriptionManager:
    """Track which poller key each connection is attached to."""

    def __init__(
        self,
        registry: PollerRegistry,
        *,
        default_lat: float | None = None,
        default_lon: float | None = None,
        default_radius: float | None = None,
        override_lat: float | None = None,
        override_lon: float | None = None,
        others_limit: int | None = None,
    ) -> None:
        self.registry = registry
        self.default_lat = settings.default_lat if default_lat is None else default_lat
        self.default_lon = settings.default_lon if default_lon is None else default_lon
        self.default_radius = settings.default_radius if default_radius is None else default_radius
        self.override_lat = override_lat
        self.override_lon = override_lon
        self.others_limit = settings.others_limit if others_limit is None else others_limit
        self._keys: dict[str, str] = {}

    @classmethod
    def from_settings(cls, registry: PollerRegistry) -> "SubscriptionManager":
        return cls(
            registry,
            default_lat=settings.default_lat,
            default_lon=settings.default_lon,
            default_radius=settings.default_radius,
            override_lat=settings.override_lat,
            override_lon=settings.override_lon,
            others_limit=settings.others_limit,
        )

    def resolve(self, lat: Any, lon: Any, radius: Any) -> tuple[float, float, float]:
        """Apply the coordinate override, then client values, then defaults."""

        client_lat = _in_range(to_number(lat), 90.0)
        client_lon = _in_range(to_number(lon), 180.0)
        if self.override_lat is not None:
            resolved_lat = self.override_lat
        else:
            resolved_lat = client_lat if client_lat is not None else self.default_lat
        if self.override_lon is not None:
            resolved_lon = self.override_lon
        else:
            resolved_lon = client_lon if client_lon is not None else self.default_lon

        resolved_radius = to_number(radius)
        if resolved_radius is None or resolved_radius <= 0:
            resolved_radius = self.default_radius
        return resolved_lat, resolved_lon, resolved_radius

    def key_for(self, subscriber: Subscriber) -> Optional[str]:
        return self._keys.get(subscriber.id)

    async def subscribe(
        self,
        subscriber: Subscriber,
        lat: Any = None,
        lon: Any = None,
        radius: Any = None,
    ) -> str:
        """Attach ``subscriber`` to the poller for its location and send the cached snapshot."""

        lat, lon, radius = self.resolve(lat, lon, radius)
        key = make_key(lat, lon, radius)

        previous = self._keys.get(subscriber.id)
        if previous is not None and previous != key:
            self.registry.detach(previous, subscriber)
            del self._keys[subscriber.id]

        state = self.registry.ensure_poller(key, lat, lon, radius)
        self.registry.attach(key, subscriber)
        self._keys[subscriber.id] = key
        logger.info("Subscriber %s subscribed -> key=%s", subscriber.id, key)

        snapshot = UpdatePayload(
            nearest=state.last_nearest,
            others=state.visible_others(self.others_limit),
            others_total=state.others_total,
            now=int(time.time() * 1000),
        )
        try:
            await subscriber.send("update", snapshot.to_message())
        except Exception as exc:
            logger.debug("Initial snapshot to %s failed: %s", subscriber.id, exc)
        return key

    def unsubscribe(self, subscriber: Subscriber) -> Optional[str]:
        """Detach ``subscriber`` from its current key, if any, and return that key."""

        key = self._keys.pop(subscriber.id, None)
        if key is None:
            return None
        self.registry.detach(key, subscriber)
        logger.info("Subscriber %s unsubscribed from %s", subscriber.id, key)
        return key

    def disconnect(self, subscriber: Subscriber) -> None:
        self.unsubscribe(subscriber)
        logger.info("Subscriber %s disconnected", subscriber.id)


__all__ = ["SubscriptionManager", "make_key"]
