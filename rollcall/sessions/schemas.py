"""
schemas.py: Session API Pydantic v2 data contracts.

Defines:
  - CreateSessionRequest, LocationUpdateRequest, JoinRequest   (inbound bodies)
  - CreateSessionResponse, SessionSnapshot, JoinResponse, OkResponse
  - ErrorDetail, ErrorBody, ErrorResponse  (cross-cutting error envelope)

Wire names are camelCase (joinUrl, scannableImage, deviceMarker). Coordinates
must be real JSON numbers: strings and booleans are rejected, ints are fine.
"""
from __future__ import annotations

import re
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from rollcall.checkin.identity import normalize
from rollcall.models import Attendee, Coordinate

# C0 controls other than tab, LF and CR cannot be stored in XLSX/DOCX files.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _reject_control_characters(value: str) -> str:
    if _CONTROL_CHARS_RE.search(value):
        raise ValueError("must not contain control characters")
    return value


Latitude = Annotated[float, Field(strict=True, ge=-90.0, le=90.0, allow_inf_nan=False)]
Longitude = Annotated[float, Field(strict=True, ge=-180.0, le=180.0, allow_inf_nan=False)]
DisplayName = Annotated[
    str,
    Field(strict=True, min_length=1, max_length=200),
    AfterValidator(_reject_control_characters),
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Inbound bodies
# ---------------------------------------------------------------------------

class _LocatedBody(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    lat: Latitude
    lng: Longitude

    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lng=self.lng)


class CreateSessionRequest(_LocatedBody):
    """POST /api/sessions: instructor opens a session at their position."""
    name: DisplayName


class LocationUpdateRequest(_LocatedBody):
    """PATCH /api/sessions/{id}/location: instructor recenters the anchor."""


class JoinRequest(_LocatedBody):
    """
    POST /api/sessions/{id}/join: student check-in.

    The registration code arrives as ``identifier`` (or the older ``rgm`` key).
    Numeric codes are accepted and kept as their decimal text.
    """
    name: DisplayName
    identifier: str = Field(
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("identifier", "rgm"),
    )

    @field_validator("identifier", mode="before")
    @classmethod
    def _coerce_numeric_code(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("identifier must be a string")
        if isinstance(value, int):
            return str(value)
        if not isinstance(value, str):
            raise ValueError("identifier must be a string")
        return value

    @field_validator("identifier")
    @classmethod
    def _has_comparable_characters(cls, value: str) -> str:
        _reject_control_characters(value)
        if not normalize(value):
            raise ValueError("identifier must contain at least one letter or digit")
        return value


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class AttendeeView(_CamelModel):
    """Public shape of an Attendee (the normalized key stays server-side)."""
    name: str
    identifier: str
    time: str
    origin_address: str

    @classmethod
    def from_attendee(cls, attendee: Attendee) -> "AttendeeView":
        return cls(
            name=attendee.name,
            identifier=attendee.identifier,
            time=attendee.time,
            origin_address=attendee.origin_address,
        )


class CreateSessionResponse(_CamelModel):
    id: str
    name: str
    join_url: str
    scannable_image: str          # data:image/png;base64,...


class SessionSnapshot(_CamelModel):
    id: str
    name: str
    active: bool
    created_at: str
    anchor: Coordinate
    attendees: List[AttendeeView]


class JoinResponse(_CamelModel):
    ok: bool = True
    attendee: AttendeeView
    device_marker: str


class OkResponse(BaseModel):
    ok: bool = True


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single field-level validation problem."""
    model_config = ConfigDict(extra="forbid")

    field: Optional[str] = None   # Dot-notation field path, e.g. "lat"
    issue: str


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str                     # NOT_FOUND, FORBIDDEN, BAD_REQUEST, CONFLICT, ...
    message: str
    reason: Optional[str] = None  # SESSION_CLOSED, OUT_OF_RANGE, DUPLICATE_IDENTIFIER, ...
    details: List[ErrorDetail] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """
    Standard error response format for all Rollcall endpoints.

    Structure: {"error": {"code": "...", "message": "...", "reason": ..., "details": [...], "context": {...}}}
    """
    model_config = ConfigDict(extra="forbid")

    error: ErrorBody


__all__ = [
    "CreateSessionRequest",
    "LocationUpdateRequest",
    "JoinRequest",
    "AttendeeView",
    "CreateSessionResponse",
    "SessionSnapshot",
    "JoinResponse",
    "OkResponse",
    "ErrorDetail",
    "ErrorBody",
    "ErrorResponse",
]
