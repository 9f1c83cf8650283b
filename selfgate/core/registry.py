"""In-memory registry of pending verification sessions.

A session is created when a member runs /verify and is consumed exactly once when
the matching proof arrives. Everything lives in process memory: a restart drops all
pending sessions and members simply run /verify again.

All operations take the same lock, so `consume` is a single read-and-delete step
even when the Discord client and the HTTP callback race on one session id, and a
sweep can never remove a record that a concurrent `consume` already returned.
"""

import threading
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from selfgate.store.models import VerificationSession
from selfgate.utils.time import now_ms


class SessionRegistry:
    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._sessions: Dict[str, VerificationSession] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def create(self, requester_id: str, origin_id: str) -> str:
        """Store a new pending session and return its id."""
        with self._lock:
            session_id = str(uuid.uuid4())
            while session_id in self._sessions:
                session_id = str(uuid.uuid4())
            self._sessions[session_id] = VerificationSession(
                sessionId=session_id,
                requesterId=str(requester_id),
                originId=str(origin_id),
                createdAtMs=self._clock(),
            )
            return session_id

    def attach(self, session_id: str, auxiliary_ref: Optional[str]) -> bool:
        """Record the rendered artifact for a still-pending session."""
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                return False
            self._sessions[session_id] = replace(current, auxiliaryRef=auxiliary_ref)
            return True

    def lookup(self, session_id: str) -> Optional[VerificationSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def consume(self, session_id: str) -> Optional[VerificationSession]:
        """Remove and return the session; None if unknown, expired or already consumed."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def sweep_expired(self, max_age_sec: float) -> List[VerificationSession]:
        """Drop never-consumed sessions older than max_age_sec. Returns what was dropped."""
        cutoff = self._clock() - int(max_age_sec * 1000)
        with self._lock:
            expired = [s for s in self._sessions.values() if s.createdAtMs < cutoff]
            for s in expired:
                del self._sessions[s.sessionId]
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
