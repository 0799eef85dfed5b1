"""In-memory registry of live review sessions."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from reagent.models import ReviewStatus, utcnow
from reagent.session import ReviewSession

logger = logging.getLogger("reagent")

SHUTDOWN_REASON = "Server shutting down"


class SessionRegistry:
    """Addressable collection of sessions keyed by id.

    Owned by the application context. Mutations are plain dict operations run
    on the event loop, so they never interleave.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ReviewSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def set(self, session: ReviewSession) -> None:
        self._sessions[session.id] = session

    def get(self, session_id: str) -> ReviewSession | None:
        return self._sessions.get(session_id)

    def has(self, session_id: str) -> bool:
        return session_id in self._sessions

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def all_sessions(self) -> list[ReviewSession]:
        return list(self._sessions.values())

    def pending_count(self) -> int:
        return sum(1 for s in self._sessions.values() if s.status == ReviewStatus.PENDING)

    def clear(self, reason: str = SHUTDOWN_REASON) -> int:
        """Cancel every pending session, then drop all entries.

        Returns the number of sessions that were cancelled.
        """
        cancelled = 0
        for session in list(self._sessions.values()):
            if session.cancel(reason):
                cancelled += 1
        self._sessions.clear()
        return cancelled

    def cleanup_old_sessions(self, max_age_seconds: float, now: datetime | None = None) -> int:
        """Remove terminal sessions older than ``max_age_seconds``.

        Pending sessions are never removed here, whatever their age; the
        session timeout is what retires them.
        """
        cutoff = (now or utcnow()) - timedelta(seconds=max_age_seconds)
        stale = [
            session_id
            for session_id, session in self._sessions.items()
            if not session.is_pending and session.created_at < cutoff
        ]
        for session_id in stale:
            del self._sessions[session_id]
        if stale:
            logger.info("cleanup -> removed %s finished session(s)", len(stale))
        return len(stale)
