"""
Sessions — isolated, time-bounded user state.

Public surface
--------------
- :class:`SessionStore` — concurrency-safe registry with per-session locks.
- :class:`CleanupScheduler` — background TTL sweep.
- :class:`Session`, :class:`ChatMessage`, :class:`ClearResult` — state models.
- :func:`release_paths` — delete files owned by a cleared session.
"""

from session_rag.sessions.cleanup import CleanupScheduler
from session_rag.sessions.models import ChatMessage, ClearResult, Session
from session_rag.sessions.resources import release_paths
from session_rag.sessions.store import SessionStore

__all__ = [
    "ChatMessage",
    "CleanupScheduler",
    "ClearResult",
    "Session",
    "SessionStore",
    "release_paths",
]
