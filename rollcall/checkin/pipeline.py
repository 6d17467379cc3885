"""
Join pipeline: decide, commit and announce a student check-in.

Checks run in a fixed order and the first failure wins:
  1. session exists                 → NotFoundError   SESSION_NOT_FOUND
  2. session is active              → ForbiddenError  SESSION_CLOSED
  3. body is complete and typed     → BadRequestError INVALID_PAYLOAD
  4. within the geofence radius     → ForbiddenError  OUT_OF_RANGE
  5. device has no marker (opt.)    → ConflictError   DUPLICATE_DEVICE
  6. registration code is new       → ConflictError   DUPLICATE_IDENTIFIER
  7. origin address is new (opt.)   → ConflictError   DUPLICATE_ADDRESS
  8. append, issue marker, publish

All of it runs under the session's store lock, so a rejected call has no side
effects and two racing submissions cannot both pass steps 5-7.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from rollcall.checkin.device_marker import DeviceMarkers
from rollcall.checkin.geofence import distance_m
from rollcall.checkin.identity import normalize
from rollcall.config import Settings
from rollcall.errors import BadRequestError, ConflictError, ForbiddenError, session_not_found
from rollcall.models import Attendee
from rollcall.notifier import ATTENDEE_NEW, NotificationHub
from rollcall.sessions.schemas import AttendeeView, JoinRequest
from rollcall.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinPolicy:
    """Deployment-specific knobs of the pipeline."""
    radius_m: float = 100.0
    check_device: bool = True
    check_address: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "JoinPolicy":
        return cls(
            radius_m=settings.geofence_radius_m,
            check_device=settings.enforce_device_marker,
            check_address=settings.enforce_address_dedup,
        )


@dataclass(frozen=True)
class JoinResult:
    attendee: Attendee
    device_marker: str


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_body(payload: Any) -> JoinRequest:
    if not isinstance(payload, dict):
        raise BadRequestError(
            "name, identifier, lat and lng are required",
            reason="INVALID_PAYLOAD",
            details=[{"field": None, "issue": "Request body must be a JSON object"}],
        )
    try:
        return JoinRequest.model_validate(payload)
    except ValidationError as exc:
        details = [
            {"field": ".".join(str(loc) for loc in error["loc"]) or None, "issue": error["msg"]}
            for error in exc.errors()
        ]
        raise BadRequestError(
            "name, identifier, lat and lng are required",
            reason="INVALID_PAYLOAD",
            details=details,
        ) from exc


def _reject(session_id: str, error: Exception) -> Exception:
    logger.info("Join rejected session_id=%s reason=%s", session_id, getattr(error, "reason", None))
    return error


def join_session(
    store: SessionStore,
    hub: NotificationHub,
    markers: DeviceMarkers,
    policy: JoinPolicy,
    session_id: str,
    payload: Any,
    origin_address: Optional[str],
    device_marker: Optional[str] = None,
    now: Optional[datetime] = None,
) -> JoinResult:
    """
    Run the check-in pipeline for one submission.

    Args:
        payload: decoded JSON body as sent by the client (validated in step 3).
        origin_address: best-effort caller address; None/"" skips step 7.
        device_marker: marker the caller already holds for this session, if any.

    Raises:
        AttendanceError subclass describing the first failed check.
    """
    with store.locked(session_id) as session:
        # ---- 1-2. Session state ------------------------------------------
        if session is None:
            raise _reject(session_id, session_not_found(session_id))
        if not session.active:
            raise _reject(session_id, ForbiddenError(
                "This session is closed to new check-ins",
                reason="SESSION_CLOSED",
            ))

        # ---- 3. Body ------------------------------------------------------
        try:
            body = _parse_body(payload)
        except BadRequestError as exc:
            raise _reject(session_id, exc)

        # ---- 4. Geofence --------------------------------------------------
        distance = distance_m(session.anchor, body.coordinate())
        if distance > policy.radius_m:
            logger.info(
                "Out of range session_id=%s distance_m=%.1f radius_m=%.0f",
                session_id, distance, policy.radius_m,
            )
            raise _reject(session_id, ForbiddenError(
                f"Outside the allowed radius ({policy.radius_m:.0f} m)",
                reason="OUT_OF_RANGE",
                context={
                    "distanceMeters": round(distance, 1),
                    "radiusMeters": policy.radius_m,
                },
            ))

        # ---- 5-7. Duplicates ----------------------------------------------
        if policy.check_device and markers.holds(device_marker, session_id):
            raise _reject(session_id, ConflictError(
                "This device has already checked in to this session",
                reason="DUPLICATE_DEVICE",
            ))

        identifier_key = normalize(body.identifier)
        if any(a.identifier_key == identifier_key for a in session.attendees):
            raise _reject(session_id, ConflictError(
                "This registration code has already checked in to this session",
                reason="DUPLICATE_IDENTIFIER",
            ))

        if (
            policy.check_address
            and origin_address
            and any(a.origin_address == origin_address for a in session.attendees)
        ):
            raise _reject(session_id, ConflictError(
                "This network address has already checked in to this session",
                reason="DUPLICATE_ADDRESS",
            ))

        # ---- 8. Commit ----------------------------------------------------
        attendee = Attendee(
            name=body.name,
            identifier=body.identifier,
            identifier_key=identifier_key,
            time=utc_timestamp(now),
            origin_address=origin_address or "",
        )
        if not store.append_attendee(session_id, attendee):
            raise _reject(session_id, session_not_found(session_id))

        marker = markers.issue(session_id)
        hub.publish(
            session_id,
            ATTENDEE_NEW,
            {"attendee": AttendeeView.from_attendee(attendee).model_dump(mode="json", by_alias=True)},
        )
        logger.info(
            "Attendee accepted session_id=%s attendees=%d distance_m=%.1f",
            session_id, len(session.attendees), distance,
        )
        return JoinResult(attendee=attendee, device_marker=marker)
