"""Models for aircraft records published to subscribers."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AirportInfo(BaseModel):
    """Origin or destination airport resolved from a route lookup."""

    city: Optional[str] = Field(default=None, description="City served by the airport")
    name: Optional[str] = Field(default=None, description="Airport name")
    iata: str = Field(default="", description="IATA code, falling back to ICAO")
    countryiso: str = Field(default="", description="ISO 3166-1 alpha-2 country code")


class Aircraft(BaseModel):
    """Sanitized aircraft record.

    Every numeric field is ``None`` when the upstream value is missing or
    unparseable so consumers can tell "unknown" apart from zero.
    """

    hex: Optional[str] = Field(default=None, description="ICAO 24-bit hex identifier")
    flight: str = Field(default="", description="Trimmed callsign / flight number")
    reg: Optional[str] = Field(default=None, description="Registration")
    type: Optional[str] = Field(default=None, description="ICAO aircraft type code")

    lat: Optional[float] = Field(default=None, description="Latitude in decimal degrees")
    lon: Optional[float] = Field(default=None, description="Longitude in decimal degrees")

    gs: Optional[float] = Field(default=None, description="Ground speed in knots")
    tas: Optional[float] = Field(default=None, description="True airspeed in knots")
    ias: Optional[float] = Field(default=None, description="Indicated airspeed in knots")
    alt_baro: Optional[float] = Field(default=None, description="Barometric altitude in feet")
    track: Optional[float] = Field(default=None, description="Track over ground in degrees")
    heading: Optional[float] = Field(default=None, description="True or magnetic heading")
    seen: Optional[float] = Field(default=None, description="Seconds since last message")
    dst: Optional[float] = Field(
        default=None, description="Distance from the query point in nautical miles"
    )
    emergency: str = Field(default="none", description="Emergency status")

    airline: Optional[str] = Field(default=None, description="Operator / airline name")
    origin: Optional[str] = Field(default=None, alias="from", description="Origin code")
    destination: Optional[str] = Field(default=None, alias="to", description="Destination code")
    from_obj: Optional[AirportInfo] = Field(default=None, description="Origin airport details")
    to_obj: Optional[AirportInfo] = Field(default=None, description="Destination airport details")
    thumb: Optional[str] = Field(default=None, description="Proxied aircraft type thumbnail")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def has_position(self) -> bool:
        return self.lat is not None and self.lon is not None

    @property
    def route_complete(self) -> bool:
        return self.from_obj is not None and self.to_obj is not None


__all__ = ["Aircraft", "AirportInfo"]
