"""
notifier.py: Per-session fan-out of accepted check-ins to instructor connections.

Namespace conventions:
  host:{session_id}   → instructor connections watching that session
  attendee:new        → event type pushed for every committed Attendee

Design:
  - Each WebSocket connection owns one Subscription (an asyncio.Queue)
  - A Subscription watches at most one session; subscribing again switches
  - publish() is fire-and-forget: no subscriber means the event is dropped,
    nothing is buffered for late subscribers
  - Delivery goes through loop.call_soon_threadsafe, so publish() may be
    called from any thread and events keep their publish order
"""
import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ATTENDEE_NEW = "attendee:new"


def room_for_session(session_id: str) -> str:
    return f"host:{session_id}"


class Subscription:
    """One connection's inbox. Create through NotificationHub.connect()."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._queue: "asyncio.Queue[dict[str, Any]]" = asyncio.Queue()
        self.session_id: Optional[str] = None

    async def get(self) -> dict[str, Any]:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def _deliver(self, event: dict[str, Any]) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            # Owning loop already closed: the connection is gone.
            return False
        return True

    def _drain(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()


class NotificationHub:
    def __init__(self) -> None:
        self._rooms: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def connect(self) -> Subscription:
        """Create a Subscription bound to the running event loop."""
        return Subscription(asyncio.get_running_loop())

    def subscribe(self, subscription: Subscription, session_id: str) -> None:
        """Watch session_id, leaving any previously watched session."""
        with self._lock:
            self._leave(subscription)
            subscription._drain()
            subscription.session_id = session_id
            self._rooms.setdefault(session_id, []).append(subscription)
        logger.info("Subscribed to %s", room_for_session(session_id))

    def disconnect(self, subscription: Subscription) -> None:
        with self._lock:
            self._leave(subscription)

    def drop_session(self, session_id: str) -> None:
        """Detach every subscriber of a deleted session."""
        with self._lock:
            for subscription in self._rooms.pop(session_id, []):
                subscription.session_id = None

    def subscriber_count(self, session_id: str) -> int:
        with self._lock:
            return len(self._rooms.get(session_id, []))

    def publish(self, session_id: str, event_type: str, payload: dict[str, Any]) -> int:
        """
        Push {type, ...payload} to every current subscriber of session_id.
        Returns the number of subscribers reached (0 is not an error).
        """
        event = {"type": event_type, **payload}
        with self._lock:
            targets = list(self._rooms.get(session_id, []))
        delivered = sum(1 for subscription in targets if subscription._deliver(event))
        logger.debug(
            "Published %s to %s subscribers=%d",
            event_type,
            room_for_session(session_id),
            delivered,
        )
        return delivered

    def _leave(self, subscription: Subscription) -> None:
        session_id = subscription.session_id
        if session_id is None:
            return
        members = self._rooms.get(session_id)
        if members and subscription in members:
            members.remove(subscription)
            if not members:
                del self._rooms[session_id]
        subscription.session_id = None
