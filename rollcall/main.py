"""
main.py: Rollcall FastAPI application entry point.

Start with: uvicorn rollcall.main:app --reload --port 3000
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rollcall.checkin.device_marker import DeviceMarkers
from rollcall.checkin.pipeline import JoinPolicy
from rollcall.config import Settings, settings as default_settings
from rollcall.errors import AttendanceError
from rollcall.notifier import NotificationHub
from rollcall.sessions.routes import router as sessions_router
from rollcall.sessions.websocket import websocket_router
from rollcall.store import SessionStore

# ---------------------------------------------------------------------------
# Logging: configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if default_settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    logger.info(
        "Rollcall v%s starting up radius_m=%.0f device_check=%s address_check=%s purge_on_export=%s",
        cfg.app_version,
        cfg.geofence_radius_m,
        cfg.enforce_device_marker,
        cfg.enforce_address_dedup,
        cfg.purge_on_export,
    )
    yield
    logger.info("Rollcall shutting down sessions_discarded=%d", len(app.state.store))


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    status_code: int = 500,
    reason: Optional[str] = None,
    context: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build a standard {error: {code, message, reason, details, context}} response."""
    body = {
        "error": {
            "code": code,
            "message": message,
            "reason": reason,
            "details": details or [],
            "context": context or {},
        }
    }
    return JSONResponse(status_code=status_code, content=body)


_HTTP_CODE_MAP = {
    400: "BAD_REQUEST",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


def _register_exception_handlers(app: FastAPI, cfg: Settings) -> None:
    @app.exception_handler(AttendanceError)
    async def attendance_error_handler(request: Request, exc: AttendanceError) -> JSONResponse:
        return _make_error_response(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            status_code=exc.status_code,
            reason=exc.reason,
            context=exc.context,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Missing or mistyped body fields are a plain 400 in this API.
        Returns ALL field violations in one response.
        """
        details = []
        for error in exc.errors():
            # Build dot-notation field path, excluding the top-level 'body' loc
            field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
            details.append({"field": field or None, "issue": error["msg"]})
        return _make_error_response(
            code="BAD_REQUEST",
            message="Request validation failed",
            details=details,
            status_code=400,
            reason="INVALID_PAYLOAD",
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        code = _HTTP_CODE_MAP.get(exc.status_code, f"HTTP_{exc.status_code}")
        return _make_error_response(
            code=code,
            message=str(exc.detail),
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch-all for unexpected errors, including export encoder failures.
        DEBUG=true  → includes exception type & message in details (dev only).
        DEBUG=false → generic message; full traceback logged server-side only.
        """
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=True,
        )
        if cfg.debug:
            details = [{"issue": f"{type(exc).__name__}: {exc}"}]
            message = "An unexpected error occurred (debug details included)"
        else:
            details = []
            message = "An unexpected error occurred"
        return _make_error_response(
            code="INTERNAL_ERROR",
            message=message,
            details=details,
            status_code=500,
        )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(cfg: Optional[Settings] = None) -> FastAPI:
    """
    Build a Rollcall app with its own store, notification hub and signer.
    Collaborators are created here (not in lifespan) so they exist even when
    a test transport skips lifespan events.
    """
    cfg = cfg or default_settings

    app = FastAPI(
        title="Rollcall API",
        version=cfg.app_version,
        description=(
            "Geofenced classroom attendance: instructors open a session at their "
            "location, students check in by QR code, accepted check-ins stream live."
        ),
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.state.settings = cfg
    app.state.store = SessionStore(
        id_length=cfg.session_id_length,
        max_attempts=cfg.session_id_max_attempts,
    )
    app.state.hub = NotificationHub()
    app.state.markers = DeviceMarkers(cfg.device_marker_secret, cfg.device_marker_ttl_seconds)
    app.state.join_policy = JoinPolicy.from_settings(cfg)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        logger.info(
            "%s %s → %d in %.4f secs",
            request.method,
            request.url.path,
            response.status_code,
            process_time,
        )
        return response

    _register_exception_handlers(app, cfg)

    @app.get("/api/health", tags=["System"])
    async def health_check() -> dict:
        """Returns service health status and the number of live sessions."""
        return {
            "status": "ok",
            "version": cfg.app_version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "sessions": len(app.state.store),
        }

    app.include_router(sessions_router)
    app.include_router(websocket_router, tags=["websocket"])
    return app


app = create_app()
