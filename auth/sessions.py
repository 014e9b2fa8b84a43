"""
auth/sessions.py -- Session Registry: issued tokens, owners, and expiry.

The registry is the source of truth for whether a token is still usable. A
token that decodes cleanly but has no live session row is rejected.

Expiry is lazy: lookup() checks the clock and purges an expired row when it
finds one. purge_expired() sweeps the rest and is driven by the background
purge loop in api/main.py.

Boundary: a session is valid while now <= expires_at and expired once
now > expires_at. count_active() uses the same rule.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.exceptions import SessionExpired, SessionNotFound
from auth.models import Session

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionRegistry:
    """In-process session table guarded by a single lock.

    Usage:
        sessions = SessionRegistry(duration=timedelta(days=7))
        sessions.open(user.id, token)
        session = sessions.lookup(token)   # raises SessionNotFound / SessionExpired
        sessions.close(token)
    """

    def __init__(self, duration: timedelta = timedelta(days=7), clock: Clock = utc_now) -> None:
        if duration <= timedelta(0):
            raise ValueError("Session duration must be positive.")
        self.duration = duration
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def open(self, user_id: int, token: str, duration: timedelta | None = None) -> Session:
        """Record a new session. Several concurrent sessions per user are allowed."""
        created_at = self._clock()
        session = Session(
            token=token,
            user_id=user_id,
            created_at=created_at,
            expires_at=created_at + (duration or self.duration),
        )
        with self._lock:
            if token in self._sessions:
                raise ValueError("Session token already registered.")
            self._sessions[token] = session
        return session

    def close(self, token: str) -> bool:
        """Remove the session for token. Returns whether one existed; never raises."""
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def lookup(self, token: str) -> Session:
        now = self._clock()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                raise SessionNotFound()
            if now > session.expires_at:
                del self._sessions[token]
                raise SessionExpired()
            return session

    def count_active(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for s in self._sessions.values() if now <= s.expires_at)

    def purge_expired(self) -> int:
        """Delete every expired session. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, s in self._sessions.items() if now > s.expires_at]
            for token in expired:
                del self._sessions[token]
        return len(expired)
