"""
models.py: In-memory domain objects held by the SessionStore.

Coordinate and Attendee are immutable once built. Session is mutable, but only
SessionStore methods change it; callers look sessions up by id on every
operation instead of keeping references between requests.

These never go over the wire directly: sessions/schemas.py defines the
camelCase views returned by the API.
"""
from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """WGS84 latitude/longitude pair in decimal degrees."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class Attendee(BaseModel):
    """One accepted check-in."""
    model_config = ConfigDict(frozen=True)

    name: str
    identifier: str          # Raw registration code ("RGM") as submitted
    identifier_key: str      # normalize(identifier), the duplicate key
    time: str                # ISO-8601, server clock (UTC)
    origin_address: str      # Best-effort caller address, "" if unknown


class Session(BaseModel):
    """One attendance session. attendees is kept in check-in order."""

    id: str
    name: str
    created_at: datetime
    anchor: Coordinate
    active: bool = True
    attendees: List[Attendee] = Field(default_factory=list)


__all__ = ["Coordinate", "Attendee", "Session"]
