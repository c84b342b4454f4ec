"""Configuration settings for the NearSky backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger("nearsky.config")


def _get_bool(env_var: str, default: bool = False) -> bool:
    """Parse an environment variable into a boolean with a default."""

    value = os.getenv(env_var)
    if value is None:
        return default

    return value.lower() in {"1", "true", "yes", "on"}


def _get_optional_float(env_var: str) -> float | None:
    """Return a float for a set, non-empty variable; ``None`` otherwise."""

    value = os.getenv(env_var)
    if value is None or value.strip() == "":
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", env_var, value)
        return None


def _ms_to_seconds(env_var: str, default_ms: str) -> float:
    return int(os.getenv(env_var, default_ms)) / 1000.0


@dataclass
class Settings:
    """Application configuration loaded from environment variables."""

    nearsky_env: str = os.getenv("NEARSKY_ENV", "local")
    log_level: str = os.getenv("NEARSKY_LOG_LEVEL", "INFO")
    log_outbound: bool = _get_bool("NEARSKY_LOG_OUTBOUND", default=True)

    # Polling cadence (environment values are milliseconds)
    poll_interval: float = _ms_to_seconds("POLL_MS", "5000")
    others_poll_interval: float = _ms_to_seconds("OTHER_POLL_MS", "20000")
    others_limit: int = int(os.getenv("OTHERS_LIMIT", "10"))
    # a subscriber send that takes longer than this counts as failed
    send_timeout: float = _ms_to_seconds("SEND_TIMEOUT_MS", "5000")

    # Enrichment caches
    callsign_ttl: float = _ms_to_seconds("CALLSIGN_TTL", "60000")
    routeset_ttl: float = _ms_to_seconds("ROUTESET_TTL", "120000")
    enrich_concurrency: int = int(os.getenv("ENRICH_CONCURRENCY", "3"))

    # Global outbound budget shared by every poller
    max_requests_per_min: int = int(os.getenv("MAX_REQUESTS_PER_MIN", "60"))

    # Location handling
    default_lat: float = float(os.getenv("DEFAULT_LAT", "51.623842"))
    default_lon: float = float(os.getenv("DEFAULT_LON", "-0.269584"))
    default_radius: float = float(os.getenv("DEFAULT_RADIUS", "250"))
    override_lat: float | None = _get_optional_float("OVERRIDE_LAT")
    override_lon: float | None = _get_optional_float("OVERRIDE_LON")

    # Upstream data source
    adsb_base_url: str = os.getenv("ADSB_BASE_URL", "https://api.adsb.lol")
    adsb_timeout: float = float(os.getenv("ADSB_TIMEOUT", "10.0"))
    docimg_base_url: str = os.getenv(
        "DOCIMG_BASE_URL", "https://doc8643.com/static/img/aircraft/large"
    )

    # Static airline reference data, loaded once at startup
    airlines_json_url: str = os.getenv(
        "AIRLINES_JSON_URL",
        "https://gist.githubusercontent.com/AndreiCalazans/390e82a1c3edff852137cb3da813eceb"
        "/raw/1a1248f966b3f644f4eae057ad9b9b1b571c6aec/airlines.json",
    )
    airlines_csv_url: str = os.getenv(
        "AIRLINES_CSV_URL",
        "https://raw.githubusercontent.com/rikgale/ICAOList/refs/heads/main/Airlines.csv",
    )
    load_airline_maps: bool = _get_bool("LOAD_AIRLINE_MAPS", default=True)


settings = Settings()

__all__ = ["settings", "Settings"]
