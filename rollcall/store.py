"""
store.py: In-memory session repository for Rollcall.

SessionStore is the single source of truth for sessions and their attendees.
One instance is created per application (see main.create_app) and handed to
routes through a FastAPI dependency; nothing reaches it through module globals.

Design principles:
  - Every operation is keyed by session id and looks the session up fresh
  - Mutators return False for an unknown id (caller raises 404)
  - Identifiers are unique across live sessions; create() retries on collision
  - Deletion is immediate and unconditional (no tombstones)
  - Logs only session ids and counts, never names, codes or addresses

All state is process memory and is lost on restart.
"""
import logging
import secrets
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, Optional

from rollcall.models import Attendee, Coordinate, Session

logger = logging.getLogger(__name__)

# No 0/O, 1/I: identifiers are read off projector screens.
SESSION_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_ID_LENGTH = 8
DEFAULT_MAX_ATTEMPTS = 16


def random_session_id(length: int = DEFAULT_ID_LENGTH) -> str:
    """Draw a fixed-length identifier from SESSION_ID_ALPHABET."""
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(length))


class SessionStore:
    """
    Map of session id → Session, plus one lock per live session.

    The lock serialises the join pipeline's check-then-append sequence so two
    concurrent submissions of the same registration code cannot both pass the
    duplicate checks. Operations on distinct sessions never contend.
    """

    def __init__(
        self,
        id_length: int = DEFAULT_ID_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        id_factory: Optional[Callable[[int], str]] = None,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._id_length = id_length
        self._max_attempts = max_attempts
        self._id_factory = id_factory or random_session_id

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, name: str, anchor: Coordinate) -> str:
        """
        Register a new active session and return its identifier.

        Raises RuntimeError if no free identifier was found after
        max_attempts draws (only plausible with a tiny id_length).
        """
        with self._guard:
            for _ in range(self._max_attempts):
                session_id = self._id_factory(self._id_length)
                if session_id not in self._sessions:
                    break
                logger.warning("Session id collision, retrying")
            else:
                raise RuntimeError(
                    f"Could not allocate a unique session id after {self._max_attempts} attempts"
                )

            self._sessions[session_id] = Session(
                id=session_id,
                name=name,
                created_at=datetime.now(timezone.utc),
                anchor=anchor,
            )
            self._locks[session_id] = threading.Lock()

        logger.info("Created session session_id=%s", session_id)
        return session_id

    def get(self, session_id: str) -> Optional[Session]:
        """Return the live Session, or None if unknown."""
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._guard:
            session = self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)
        if session is None:
            return False
        logger.info(
            "Deleted session session_id=%s attendees=%d",
            session_id,
            len(session.attendees),
        )
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_active(self, session_id: str, active: bool) -> bool:
        """
        Open or close a session. Closing is one-way: asking to reactivate a
        closed session raises ValueError.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return False
        if active and not session.active:
            raise ValueError(f"Session '{session_id}' is closed and cannot be reopened")
        session.active = active
        logger.info("Session session_id=%s active=%s", session_id, active)
        return True

    def set_anchor(self, session_id: str, anchor: Coordinate) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.anchor = anchor
        logger.info("Re-anchored session session_id=%s", session_id)
        return True

    def append_attendee(self, session_id: str, attendee: Attendee) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.attendees.append(attendee)
        return True

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self, session_id: str) -> Iterator[Optional[Session]]:
        """
        Hold the session's lock and yield the session (None if unknown).

        Re-reads the session after acquiring so a concurrent delete is seen.
        """
        lock = self._locks.get(session_id)
        if lock is None:
            yield None
            return
        with lock:
            yield self._sessions.get(session_id)
