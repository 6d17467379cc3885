"""
Instructor real-time channel: /ws/host

Protocol (JSON text frames):
  client → {"type": "host:join", "sessionId": "ABCD2345"}
  server → {"type": "host:joined", "sessionId": "ABCD2345"}
           {"type": "error", "code": "NOT_FOUND", "sessionId": "..."}
           {"type": "attendee:new", "attendee": {...}}     (one per accepted join)

A connection watches one session at a time; a new host:join switches it.
Only check-ins accepted after the subscription are delivered.
"""
import asyncio
import contextlib
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from rollcall.notifier import NotificationHub, Subscription

websocket_router = APIRouter()
logger = logging.getLogger(__name__)

HOST_JOIN = "host:join"


async def _forward_events(websocket: WebSocket, hub: NotificationHub, subscription: Subscription) -> None:
    """Push queued events to the socket until cancelled or a send fails."""
    try:
        while True:
            event = await subscription.get()
            await websocket.send_json(event)
    except Exception:
        logger.warning(
            "Host channel send failed session_id=%s", subscription.session_id, exc_info=True
        )
        hub.disconnect(subscription)


@websocket_router.websocket("/ws/host")
async def host_channel(websocket: WebSocket) -> None:
    await websocket.accept()
    hub: NotificationHub = websocket.app.state.hub
    store = websocket.app.state.store

    subscription = hub.connect()
    forwarder = asyncio.create_task(_forward_events(websocket, hub, subscription))
    try:
        while True:
            data = await websocket.receive_text()
            if forwarder.done():
                break
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Ignoring non-JSON frame on /ws/host")
                continue
            if not isinstance(msg, dict) or msg.get("type") != HOST_JOIN:
                continue

            session_id = msg.get("sessionId")
            if not isinstance(session_id, str) or session_id not in store:
                await websocket.send_json(
                    {"type": "error", "code": "NOT_FOUND", "sessionId": session_id}
                )
                continue

            hub.subscribe(subscription, session_id)
            await websocket.send_json({"type": "host:joined", "sessionId": session_id})

    except WebSocketDisconnect:
        logger.info("Host channel disconnected session_id=%s", subscription.session_id)
    finally:
        hub.disconnect(subscription)
        forwarder.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await forwarder
