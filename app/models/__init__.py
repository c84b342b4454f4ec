"""Pydantic models for the NearSky backend."""

from .aircraft import Aircraft, AirportInfo
from .stream import ErrorPayload, SubscribeRequest, UpdatePayload

__all__ = [
    "Aircraft",
    "AirportInfo",
    "ErrorPayload",
    "SubscribeRequest",
    "UpdatePayload",
]
