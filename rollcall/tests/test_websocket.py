"""
Instructor WebSocket channel (/ws/host).

Uses Starlette's TestClient as a context manager so HTTP calls and the
WebSocket session share one event loop.
"""
from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from rollcall.main import create_app
from rollcall.notifier import NotificationHub
from rollcall.sessions.websocket import _forward_events
from rollcall.tests.helpers import ORIGIN, make_settings, north_of_origin


def _create(tc: TestClient, name: str = "Live") -> str:
    return tc.post("/api/sessions", json={"name": name, **ORIGIN}).json()["id"]


def _join(tc: TestClient, session_id: str, identifier: str, ip: str, at: dict = ORIGIN):
    tc.cookies.clear()
    return tc.post(
        f"/api/sessions/{session_id}/join",
        json={"name": f"Student {identifier}", "identifier": identifier, **at},
        headers={"X-Forwarded-For": ip},
    )


def test_host_receives_accepted_check_ins_in_order() -> None:
    with TestClient(create_app(make_settings())) as tc:
        session_id = _create(tc)
        with tc.websocket_connect("/ws/host") as ws:
            ws.send_json({"type": "host:join", "sessionId": session_id})
            assert ws.receive_json() == {"type": "host:joined", "sessionId": session_id}

            assert _join(tc, session_id, "A-1", "10.0.0.1").status_code == 200
            assert _join(tc, session_id, "a1", "10.0.0.2").status_code == 409
            assert _join(tc, session_id, "C-3", "10.0.0.3", at=north_of_origin(500)).status_code == 403
            assert _join(tc, session_id, "B-2", "10.0.0.4").status_code == 200

            first = ws.receive_json()
            second = ws.receive_json()

    assert first["type"] == "attendee:new"
    assert first["attendee"]["identifier"] == "A-1"
    assert first["attendee"]["originAddress"] == "10.0.0.1"
    assert second["attendee"]["identifier"] == "B-2"


def test_unknown_session_is_reported_and_not_subscribed() -> None:
    with TestClient(create_app(make_settings())) as tc:
        with tc.websocket_connect("/ws/host") as ws:
            ws.send_json({"type": "host:join", "sessionId": "NOPE2345"})
            assert ws.receive_json() == {
                "type": "error",
                "code": "NOT_FOUND",
                "sessionId": "NOPE2345",
            }


def test_malformed_frames_are_skipped_and_resubscribe_switches() -> None:
    with TestClient(create_app(make_settings())) as tc:
        first_id = _create(tc, "First")
        second_id = _create(tc, "Second")
        with tc.websocket_connect("/ws/host") as ws:
            ws.send_text("not json")
            ws.send_json({"type": "something-else"})
            ws.send_json({"type": "host:join", "sessionId": first_id})
            assert ws.receive_json()["sessionId"] == first_id

            ws.send_json({"type": "host:join", "sessionId": second_id})
            assert ws.receive_json()["sessionId"] == second_id

            assert _join(tc, first_id, "X-1", "10.0.0.1").status_code == 200
            assert _join(tc, second_id, "Y-2", "10.0.0.2").status_code == 200

            event = ws.receive_json()

    assert event["attendee"]["identifier"] == "Y-2"


def test_disconnect_releases_subscription() -> None:
    app = create_app(make_settings())
    with TestClient(app) as tc:
        session_id = _create(tc)
        with tc.websocket_connect("/ws/host") as ws:
            ws.send_json({"type": "host:join", "sessionId": session_id})
            ws.receive_json()
            assert app.state.hub.subscriber_count(session_id) == 1

        # Joins after the host left are accepted and silently not delivered.
        assert _join(tc, session_id, "A-1", "10.0.0.1").status_code == 200
        assert app.state.hub.subscriber_count(session_id) == 0


# ---------------------------------------------------------------------------
# Forwarder
# ---------------------------------------------------------------------------

class _BrokenSocket:
    def __init__(self) -> None:
        self.attempts = 0

    async def send_json(self, data) -> None:
        self.attempts += 1
        raise RuntimeError("socket already closed")


@pytest.mark.asyncio
async def test_failed_send_stops_forwarding_and_releases_subscription() -> None:
    hub = NotificationHub()
    subscription = hub.connect()
    hub.subscribe(subscription, "ABCD2345")
    socket = _BrokenSocket()

    task = asyncio.create_task(_forward_events(socket, hub, subscription))
    hub.publish("ABCD2345", "attendee:new", {"attendee": {"name": "Ana"}})

    await asyncio.wait_for(task, timeout=1)
    assert task.exception() is None
    assert socket.attempts == 1
    assert hub.subscriber_count("ABCD2345") == 0
    assert hub.publish("ABCD2345", "attendee:new", {"attendee": {"name": "Bia"}}) == 0
    assert subscription.pending() == 0
