"""Concurrency-safe session registry with TTL-based eviction.

Locking
-------
* ``_registry_lock`` guards only membership of the two dicts and is held
  for dictionary operations, never for I/O.
* Each session has its own ``RLock``.  ``update`` and ``clear`` for one id
  serialise on it, so two ingestions for the same session cannot interleave,
  while a slow request on one session never blocks another session.

Long-running work (loading, embedding, generation) happens outside both
locks; callers only enter the store to read a snapshot or to apply the
final state transition.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from uuid import uuid4

from session_rag.errors import SessionNotFound
from session_rag.sessions.models import ClearResult, Session, utcnow

logger = logging.getLogger(__name__)

Mutation = Callable[[Session], Session]


class SessionStore:
    """Registry mapping session ids to :class:`Session` snapshots.

    Parameters
    ----------
    ttl_seconds:
        Inactivity after which a session is eligible for eviction.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = 1800,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    # -- lifecycle ------------------------------------------------------------

    def create(self) -> str:
        """Allocate a fresh session and return its id."""
        now = self._clock()
        session_id = uuid4().hex
        session = Session(session_id=session_id, created_at=now, last_activity=now)
        with self._registry_lock:
            self._sessions[session_id] = session
            self._locks[session_id] = threading.RLock()
        logger.info("Created session %s", session_id)
        return session_id

    def get(self, session_id: str) -> Session:
        """Return the current snapshot and mark the session as active."""
        return self.update(session_id, lambda session: session)

    def exists(self, session_id: str) -> bool:
        with self._registry_lock:
            return session_id in self._sessions

    def update(self, session_id: str, mutation: Mutation) -> Session:
        """Atomically apply *mutation* to the session and store the result.

        *mutation* receives the current snapshot and returns the new one.  It
        runs under the session's lock, so it must be quick and must not call
        back into the store for other sessions.
        """
        with self._session_lock(session_id):
            current = self._lookup(session_id)
            updated = mutation(current).touched(self._clock())
            with self._registry_lock:
                self._sessions[session_id] = updated
            return updated

    def clear(self, session_id: str, *, expired_only: bool = False) -> ClearResult:
        """Remove the session and release its index.

        Returns the paths the session owned so the caller can delete them.
        Clearing an unknown id is not an error.  With *expired_only* the TTL
        check is repeated under the session lock, so a session used while a
        sweep is running is left alone.
        """
        try:
            lock = self._session_lock(session_id)
        except SessionNotFound:
            return ClearResult(cleared=False)

        with lock:
            with self._registry_lock:
                session = self._sessions.get(session_id)
            if session is None:
                return ClearResult(cleared=False)
            if expired_only and not self.is_expired(session):
                return ClearResult(cleared=False)

            if session.index is not None:
                try:
                    session.index.release()
                except Exception:
                    logger.warning("Failed to release index of session %s", session_id, exc_info=True)

            with self._registry_lock:
                self._sessions.pop(session_id, None)
                self._locks.pop(session_id, None)

        logger.info("Cleared session %s", session_id)
        return ClearResult(cleared=True, owned_paths=session.owned_paths)

    def close(self) -> list[Path]:
        """Clear every session and return all paths they owned."""
        paths: list[Path] = []
        for session_id in self.session_ids():
            paths.extend(self.clear(session_id).owned_paths)
        return paths

    # -- observability --------------------------------------------------------

    def count(self) -> int:
        with self._registry_lock:
            return len(self._sessions)

    def session_ids(self) -> list[str]:
        with self._registry_lock:
            return list(self._sessions)

    def is_expired(self, session: Session, now: datetime | None = None) -> bool:
        now = now or self._clock()
        return now - session.last_activity > self.ttl

    def expired_ids(self, now: datetime | None = None) -> list[str]:
        """Ids whose last activity is older than the TTL."""
        now = now or self._clock()
        with self._registry_lock:
            snapshot = list(self._sessions.values())
        return [s.session_id for s in snapshot if self.is_expired(s, now)]

    # -- internals ------------------------------------------------------------

    def _session_lock(self, session_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFound(session_id)
        return lock

    def _lookup(self, session_id: str) -> Session:
        # A clear may have won the race for the lock.
        with self._registry_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session
