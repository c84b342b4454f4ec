"""Service-layer components for the shared poller."""

from .concurrency import TaskError, run_bounded
from .cycle import FetchCycle
from .enrichment import Enricher, merge_callsign, merge_route, thumbnail_for
from .poller import PollerRegistry, PollerState, RecurringTask, Subscriber, fanout
from .rate_limiter import TokenBucket
from .subscriptions import SubscriptionManager, make_key
from .ttl_cache import CacheEntry, TTLCache

__all__ = [
    "CacheEntry",
    "Enricher",
    "FetchCycle",
    "PollerRegistry",
    "PollerState",
    "RecurringTask",
    "Subscriber",
    "SubscriptionManager",
    "TTLCache",
    "TaskError",
    "TokenBucket",
    "fanout",
    "make_key",
    "merge_callsign",
    "merge_route",
    "run_bounded",
    "thumbnail_for",
]
