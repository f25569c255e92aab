from __future__ import annotations  # Process-wide session registry with per-session locking

from contextlib import contextmanager
from datetime import datetime, timedelta
from threading import Lock, RLock
from typing import Dict, Iterator, List, Optional

from .errors import SessionNotFound
from .models import Session, utcnow


class SessionStore:  # Thread-safe in-memory store owned by the coordinator
    def __init__(self, retention_minutes: int = 0) -> None:
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, RLock] = {}
        self._finished_at: Dict[str, datetime] = {}
        self._guard = Lock()
        self._retention = timedelta(minutes=retention_minutes) if retention_minutes > 0 else None

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._guard:
            return session_id in self._sessions

    def add(self, session: Session) -> None:  # Register a freshly created session
        with self._guard:
            if session.id in self._sessions:
                raise ValueError(f"Duplicate session id {session.id}")
            self._sessions[session.id] = session
            self._locks[session.id] = RLock()

    def get(self, session_id: str) -> Session:
        with self._guard:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    @contextmanager
    def locked(self, session_id: str) -> Iterator[Session]:  # Serialize operations on one session
        with self._guard:
            session = self._sessions.get(session_id)
            lock = self._locks.get(session_id)
        if session is None or lock is None:
            raise SessionNotFound(session_id)
        with lock:
            yield session

    def mark_finished(self, session_id: str, at: Optional[datetime] = None) -> None:
        with self._guard:
            if session_id in self._sessions:
                self._finished_at[session_id] = at or utcnow()

    def purge(self, now: Optional[datetime] = None) -> List[str]:  # Drop finished sessions past retention
        if self._retention is None:
            return []
        current = now or utcnow()
        with self._guard:
            expired = [
                session_id
                for session_id, finished_at in self._finished_at.items()
                if current - finished_at >= self._retention
            ]
            for session_id in expired:
                self._sessions.pop(session_id, None)
                self._locks.pop(session_id, None)
                self._finished_at.pop(session_id, None)
        return expired

    def clear(self) -> None:  # Tear down at process stop
        with self._guard:
            self._sessions.clear()
            self._locks.clear()
            self._finished_at.clear()
