"""In-memory session store with per-session locks and idle expiry."""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List

from census_intake.conversation.session import ConversationSession
from census_intake.exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    session: ConversationSession
    last_access: float
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionStore:
    """
    Keyed store of active conversation sessions.

    The store lock only guards the dictionary; answer application is
    serialized by the per-session lock handed out by ``lock()``.
    """

    def __init__(self, idle_timeout_seconds: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.idle_timeout_seconds = idle_timeout_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def add(self, session: ConversationSession) -> None:
        with self._lock:
            self._entries[session.session_id] = _Entry(session=session, last_access=self._clock())

    def get(self, session_id: str) -> ConversationSession:
        """
        Get an active session.

        Raises:
            SessionNotFoundError: If the session does not exist or has expired
        """
        return self._entry(session_id).session

    @contextmanager
    def lock(self, session_id: str) -> Iterator[ConversationSession]:
        """Hold the session's lock for the duration of the block."""
        entry = self._entry(session_id)
        with entry.lock:
            # The session may have been removed while we waited
            with self._lock:
                if self._entries.get(session_id) is not entry:
                    raise SessionNotFoundError(f"Session {session_id} not found")
            yield entry.session
            entry.last_access = self._clock()

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def expire_idle(self) -> List[str]:
        """Drop every session idle for longer than the timeout. Returns the expired ids."""
        now = self._clock()
        with self._lock:
            expired = [
                sid for sid, entry in self._entries.items()
                if now - entry.last_access > self.idle_timeout_seconds
            ]
            for sid in expired:
                del self._entries[sid]
        for sid in expired:
            logger.info(f"Session {sid} expired after {self.idle_timeout_seconds:.0f}s idle")
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._entries

    def _entry(self, session_id: str) -> _Entry:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is not None and now - entry.last_access > self.idle_timeout_seconds:
                del self._entries[session_id]
                logger.info(f"Session {session_id} expired after {self.idle_timeout_seconds:.0f}s idle")
                entry = None
            if entry is None:
                raise SessionNotFoundError(f"Session {session_id} not found")
            entry.last_access = now
            return entry
