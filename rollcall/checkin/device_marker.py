"""
Device markers: opaque, signed proof that a device already checked in.

A marker is an itsdangerous URLSafeTimedSerializer token over the session id.
It is issued after a successful join and presented back by the client (cookie
or header). Tokens that are forged, expired, or minted for another session do
not count as a marker for this session.
"""
from __future__ import annotations

import logging
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

logger = logging.getLogger(__name__)

_SALT = "rollcall.device-marker"


class DeviceMarkers:
    def __init__(self, secret: str, ttl_seconds: int = 86400) -> None:
        self._serializer = URLSafeTimedSerializer(secret, salt=_SALT)
        self.ttl_seconds = ttl_seconds

    def issue(self, session_id: str) -> str:
        return self._serializer.dumps({"sid": session_id})

    def holds(self, token: Optional[str], session_id: str) -> bool:
        """True if token is a valid, unexpired marker for session_id."""
        if not token:
            return False
        try:
            data = self._serializer.loads(token, max_age=self.ttl_seconds)
        except SignatureExpired:
            logger.info("Expired device marker ignored session_id=%s", session_id)
            return False
        except BadSignature:
            logger.info("Invalid device marker ignored session_id=%s", session_id)
            return False
        return isinstance(data, dict) and data.get("sid") == session_id
