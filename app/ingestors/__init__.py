"""Upstream data sources for NearSky."""

from .adsb import ADSBClient, UpstreamError, haversine_nm, sanitize_aircraft, to_number
from .airlines import AirlineDirectory

__all__ = [
    "ADSBClient",
    "AirlineDirectory",
    "UpstreamError",
    "haversine_nm",
    "sanitize_aircraft",
    "to_number",
]
