# ABOUTME: SessionStore parks sessions awaiting a selection and hands each out at most once.
# ABOUTME: Expired sessions are swept every N handled requests rather than on a timer.

import logging
import threading
import time
from collections.abc import Callable

from bibgate.errors import SessionNotFoundError
from bibgate.sessions.session import TranslationSession

logger = logging.getLogger(__name__)


class SessionStore:
    """Thread-safe map of parked sessions with request-counted garbage collection.

    ``take`` removes the session it returns, so two follow-ups racing on the
    same id cannot both claim it.
    """

    def __init__(
        self,
        *,
        timeout: float,
        gc_interval: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout
        self._gc_interval = gc_interval
        self._clock = clock
        self._sessions: dict[str, tuple[TranslationSession, float]] = {}
        self._requests_since_gc = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def park(self, session: TranslationSession) -> None:
        with self._lock:
            self._sessions[session.id] = (session, self._clock())
        logger.debug("Parked session %s", session.id)

    def take(self, session_id: str) -> TranslationSession:
        """Remove and return a parked session.

        Raises:
            SessionNotFoundError: Unknown, expired, or already taken.
        """
        with self._lock:
            entry = self._sessions.pop(session_id, None)
        if entry is None:
            raise SessionNotFoundError()
        return entry[0]

    def sweep(self) -> list[TranslationSession]:
        """Drop sessions parked longer than the timeout and return them."""
        now = self._clock()
        with self._lock:
            expired = [
                sid for sid, (_, parked_at) in self._sessions.items()
                if now >= parked_at + self._timeout
            ]
            swept = [self._sessions.pop(sid)[0] for sid in expired]
        if swept:
            logger.info("Swept %d expired sessions", len(swept))
        return swept

    def tick(self) -> list[TranslationSession]:
        """Count a handled request; sweep when the interval is reached."""
        with self._lock:
            self._requests_since_gc += 1
            due = self._requests_since_gc >= self._gc_interval
            if due:
                self._requests_since_gc = 0
        return self.sweep() if due else []

    def drain(self) -> list[TranslationSession]:
        """Remove and return every parked session."""
        with self._lock:
            sessions = [session for session, _ in self._sessions.values()]
            self._sessions.clear()
        return sessions
