"""Shared pollers keyed by quantized location, with reference-counted teardown."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

from app.config import settings
from app.models.aircraft import Aircraft

logger = logging.getLogger("nearsky.poller")

# strong references for fire-and-forget tasks
_background_tasks: set[asyncio.Task] = set()


def _spawn(coro: Awaitable[None], *, name: str) -> asyncio.Task:
    task = asyncio.ensure_future(coro)
    task.set_name(name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


class Subscriber(Protocol):
    """A live connection that receives events from a poller."""

    id: str

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        ...


async def fanout(
    subscribers: list[Subscriber],
    event: str,
    payload: dict[str, Any],
    *,
    timeout: float | None = None,
) -> int:
    """Deliver ``payload`` to every subscriber; return how many deliveries failed.

    Each delivery runs as its own task bounded by ``timeout`` seconds, so a
    failing or stalled subscriber never blocks the others or the poll loop.
    """

    if not subscribers:
        return 0
    timeout = settings.send_timeout if timeout is None else timeout
    results = await asyncio.gather(
        *(
            asyncio.wait_for(subscriber.send(event, payload), timeout)
            for subscriber in subscribers
        ),
        return_exceptions=True,
    )
    failures = 0
    for subscriber, result in zip(subscribers, results):
        if isinstance(result, Exception):
            failures += 1
            logger.debug("Delivery of %s to %s failed: %r", event, subscriber.id, result)
    return failures


class RecurringTask:
    """Run a coroutine function now and then every ``interval`` seconds.

    A tick is skipped while the previous run is still in flight. :meth:`cancel`
    stops future ticks; a run already in flight is left to finish.
    """

    def __init__(
        self,
        func: Callable[[], Awaitable[None]],
        interval: float,
        *,
        name: str = "recurring",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.func = func
        self.interval = interval
        self.name = name
        self._sleep = sleep
        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def active(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def start(self) -> None:
        if self.active:
            return
        self._loop_task = _spawn(self._loop(), name=f"{self.name}:timer")

    def cancel(self, *, include_inflight: bool = False) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
        if include_inflight and self._inflight is not None:
            self._inflight.cancel()

    async def _loop(self) -> None:
        while True:
            if self.busy:
                logger.debug("%s: previous run still in flight; skipping tick", self.name)
            else:
                self.runs += 1
                self._inflight = _spawn(self._run_once(), name=f"{self.name}:run")
            await self._sleep(self.interval)

    async def _run_once(self) -> None:
        try:
            await self.func()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s: run failed", self.name)


@dataclass(eq=False)
class PollerState:
    """Per-key poller record owned by :class:`PollerRegistry`."""

    key: str
    lat: float
    lon: float
    radius: float
    subscribers: set = field(default_factory=set)
    last_others_fetch: Optional[float] = None
    others_fetched_at: int = 0
    cached_others: list[Aircraft] = field(default_factory=list)
    others_total: int = 0
    last_nearest: Optional[Aircraft] = None
    timer: Optional[RecurringTask] = None

    def visible_others(self, limit: int) -> list[Aircraft]:
        """Cached nearby list without the last nearest, capped at ``limit``."""

        # the nearby list refreshes less often than the nearest, so filter on every read
        nearest = self.last_nearest
        others = self.cached_others
        if nearest is not None and nearest.hex:
            others = [aircraft for aircraft in others if aircraft.hex != nearest.hex]
        return others[:limit]

    async def broadcast(self, event: str, payload: dict[str, Any]) -> int:
        # iterate over a copy; the set may change while deliveries are awaited
        return await fanout(list(self.subscribers), event, payload)


class PollerRegistry:
    """Map of GeoKey to running poller.

    Creation, attach, detach and teardown never suspend, so the map stays
    consistent under task interleaving without locks.
    """

    def __init__(
        self,
        cycle: Callable[[PollerState], Awaitable[None]],
        *,
        interval: float | None = None,
    ) -> None:
        self.cycle = cycle
        self.interval = settings.poll_interval if interval is None else interval
        self._pollers: dict[str, PollerState] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._pollers

    def __len__(self) -> int:
        return len(self._pollers)

    def get(self, key: str) -> Optional[PollerState]:
        return self._pollers.get(key)

    def ensure_poller(self, key: str, lat: float, lon: float, radius: float) -> PollerState:
        """Return the poller for ``key``, creating and starting it if needed."""

        state = self._pollers.get(key)
        if state is not None:
            return state

        state = PollerState(key=key, lat=lat, lon=lon, radius=radius)

        async def run_cycle() -> None:
            await self.cycle(state)

        state.timer = RecurringTask(run_cycle, self.interval, name=f"poller[{key}]")
        self._pollers[key] = state
        state.timer.start()
        logger.info("Poller started key=%s interval=%ss", key, self.interval)
        return state

    def attach(self, key: str, subscriber: Subscriber) -> PollerState:
        state = self._pollers.get(key)
        if state is None:
            raise KeyError(f"No poller registered for {key}")
        state.subscribers.add(subscriber)
        return state

    def detach(self, key: str, subscriber: Subscriber) -> bool:
        """Remove ``subscriber``; return True when this tore the poller down."""

        state = self._pollers.get(key)
        if state is None:
            return False
        state.subscribers.discard(subscriber)
        if state.subscribers:
            return False
        self._teardown(state)
        return True

    def _teardown(self, state: PollerState, *, include_inflight: bool = False) -> None:
        if state.timer is not None:
            state.timer.cancel(include_inflight=include_inflight)
        if self._pollers.get(state.key) is state:
            del self._pollers[state.key]
        logger.info("Poller stopped and removed key=%s", state.key)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Read-only per-key diagnostics."""

        return {
            key: {
                "subs": len(state.subscribers),
                "lastOthersFetch": state.others_fetched_at,
                "cachedOthers": len(state.cached_others),
                "othersTotal": state.others_total,
            }
            for key, state in self._pollers.items()
        }

    def shutdown(self) -> None:
        for state in list(self._pollers.values()):
            self._teardown(state, include_inflight=True)


__all__ = [
    "PollerRegistry",
    "PollerState",
    "RecurringTask",
    "Subscriber",
    "fanout",
]
