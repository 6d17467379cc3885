"""
routes.py: Session HTTP endpoints.

POST  /api/sessions                        open a session, returns join URL + QR
GET   /api/sessions/{id}                   snapshot with attendees in check-in order
GET   /api/sessions/{id}/qr                PNG QR code for the join URL
PATCH /api/sessions/{id}/location          recenter the geofence anchor
POST  /api/sessions/{id}/join              student check-in (join pipeline)
POST  /api/sessions/{id}/close             stop accepting check-ins
GET   /api/sessions/{id}/export.{fmt}      xlsx | docx | pdf download
POST  /api/sessions/{id}/purge             delete the session immediately

No instructor authentication: knowing a session id is enough to manage it.
Errors are raised as rollcall.errors types and rendered by main.py.
"""
import json
import logging
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from rollcall.checkin.device_marker import DeviceMarkers
from rollcall.checkin.pipeline import JoinPolicy, join_session
from rollcall.config import Settings
from rollcall.dependencies import get_hub, get_join_policy, get_markers, get_settings, get_store
from rollcall.errors import session_not_found
from rollcall.export import EXPORT_FORMATS, export_filename, qr_data_url, render_qr_png
from rollcall.models import Session
from rollcall.notifier import NotificationHub
from rollcall.sessions.schemas import (
    AttendeeView,
    CreateSessionRequest,
    CreateSessionResponse,
    JoinResponse,
    LocationUpdateRequest,
    OkResponse,
    SessionSnapshot,
)
from rollcall.store import SessionStore

router = APIRouter(prefix="/api", tags=["sessions"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_session(store: SessionStore, session_id: str) -> Session:
    session = store.get(session_id)
    if session is None:
        raise session_not_found(session_id)
    return session


def _first_header_value(value: str) -> str:
    return value.split(",")[0].strip()


def _join_url(request: Request, settings: Settings, session_id: str) -> str:
    """Join URL for the QR code, honouring reverse-proxy forwarding headers."""
    if settings.public_base_url:
        base = settings.public_base_url.rstrip("/")
    else:
        proto = _first_header_value(request.headers.get("x-forwarded-proto") or request.url.scheme)
        host = _first_header_value(
            request.headers.get("x-forwarded-host")
            or request.headers.get("host")
            or request.url.netloc
        )
        base = f"{proto}://{host}"
    return f"{base}{settings.join_path}?id={session_id}"


def _client_address(request: Request, settings: Settings) -> Optional[str]:
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded and _first_header_value(forwarded):
            return _first_header_value(forwarded)
    return request.client.host if request.client else None


def _marker_cookie(settings: Settings, session_id: str) -> str:
    return f"{settings.device_marker_cookie_prefix}{session_id}"


def _snapshot(session: Session) -> SessionSnapshot:
    return SessionSnapshot(
        id=session.id,
        name=session.name,
        active=session.active,
        created_at=session.created_at.isoformat(),
        anchor=session.anchor,
        attendees=[AttendeeView.from_attendee(a) for a in session.attendees],
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@router.post("/sessions", response_model=CreateSessionResponse)
async def create_session(
    body: CreateSessionRequest,
    request: Request,
    store: SessionStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> CreateSessionResponse:
    session_id = store.create(body.name, body.coordinate())
    join_url = _join_url(request, settings, session_id)
    image = await run_in_threadpool(qr_data_url, join_url)
    return CreateSessionResponse(
        id=session_id,
        name=body.name,
        join_url=join_url,
        scannable_image=image,
    )


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_session(
    session_id: str,
    store: SessionStore = Depends(get_store),
) -> SessionSnapshot:
    return _snapshot(_require_session(store, session_id))


@router.get("/sessions/{session_id}/qr")
async def get_session_qr(
    session_id: str,
    request: Request,
    store: SessionStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Response:
    _require_session(store, session_id)
    png = await run_in_threadpool(render_qr_png, _join_url(request, settings, session_id))
    return Response(content=png, media_type="image/png")


@router.patch("/sessions/{session_id}/location", response_model=OkResponse)
async def update_location(
    session_id: str,
    body: LocationUpdateRequest,
    store: SessionStore = Depends(get_store),
) -> OkResponse:
    if not store.set_anchor(session_id, body.coordinate()):
        raise session_not_found(session_id)
    return OkResponse()


@router.post("/sessions/{session_id}/close", response_model=OkResponse)
async def close_session(
    session_id: str,
    store: SessionStore = Depends(get_store),
) -> OkResponse:
    if not store.set_active(session_id, False):
        raise session_not_found(session_id)
    return OkResponse()


@router.post("/sessions/{session_id}/purge", response_model=OkResponse)
async def purge_session(
    session_id: str,
    store: SessionStore = Depends(get_store),
    hub: NotificationHub = Depends(get_hub),
) -> OkResponse:
    if not store.delete(session_id):
        raise session_not_found(session_id)
    hub.drop_session(session_id)
    return OkResponse()


# ---------------------------------------------------------------------------
# Check-in
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/join", response_model=JoinResponse)
async def join(
    session_id: str,
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_store),
    hub: NotificationHub = Depends(get_hub),
    markers: DeviceMarkers = Depends(get_markers),
    policy: JoinPolicy = Depends(get_join_policy),
    settings: Settings = Depends(get_settings),
) -> JoinResponse:
    """
    Validate and record a student check-in.

    The body is decoded here but validated inside the pipeline, so an unknown
    or closed session is reported before a malformed body.
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None

    cookie_name = _marker_cookie(settings, session_id)
    held_marker = request.cookies.get(cookie_name) or request.headers.get("x-device-marker")

    result = join_session(
        store,
        hub,
        markers,
        policy,
        session_id,
        payload,
        origin_address=_client_address(request, settings),
        device_marker=held_marker,
    )

    response.set_cookie(
        cookie_name,
        result.device_marker,
        max_age=markers.ttl_seconds,
        httponly=False,
        samesite="lax",
    )
    return JoinResponse(
        attendee=AttendeeView.from_attendee(result.attendee),
        device_marker=result.device_marker,
    )


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

@router.get("/sessions/{session_id}/export.{fmt}")
async def export_session(
    session_id: str,
    fmt: str,
    store: SessionStore = Depends(get_store),
    hub: NotificationHub = Depends(get_hub),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """
    Download the attendance list. With purge_on_export the session is closed
    before the rows are copied and deleted once the file has been built, so a
    second export returns 404.
    """
    export_format = EXPORT_FORMATS.get(fmt)
    if export_format is None:
        raise HTTPException(status_code=404, detail=f"Unsupported export format '{fmt}'")

    with store.locked(session_id) as session:
        if session is None:
            raise session_not_found(session_id)
        if settings.purge_on_export:
            # Anything accepted after this copy would be deleted unexported.
            session.active = False
        frozen = session.model_copy(update={"attendees": list(session.attendees)})

    content = await run_in_threadpool(export_format.build, frozen)
    filename = export_filename(frozen.name, export_format.extension)
    logger.info(
        "Exported session_id=%s format=%s attendees=%d",
        session_id, export_format.extension, len(frozen.attendees),
    )

    if settings.purge_on_export and store.delete(session_id):
        hub.drop_session(session_id)

    return StreamingResponse(
        BytesIO(content),
        media_type=export_format.media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
