"""Session state — immutable snapshots swapped atomically by the store.

A :class:`Session` is never mutated in place.  Every state transition
builds a new snapshot (``dataclasses.replace``) inside
:meth:`SessionStore.update`, so a snapshot handed to a caller can be read
freely while other requests move the session forward.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from session_rag.retrieval.base import VectorIndex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    """One entry of a session's chat history.  Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


@dataclass(frozen=True)
class Session:
    """Snapshot of one session.

    Attributes
    ----------
    session_id:
        Opaque unique identifier.
    created_at:
        When the session was created (UTC).
    last_activity:
        Last time the session was read or changed (UTC).
    index:
        Vector index built by the latest successful ingestion, ``None``
        until the first one.
    chat_history:
        Ordered question / answer log, for display only.
    owned_paths:
        Uploaded files deleted when the session is cleared or expires.
    """

    session_id: str
    created_at: datetime
    last_activity: datetime
    index: VectorIndex | None = None
    chat_history: tuple[ChatMessage, ...] = ()
    owned_paths: tuple[Path, ...] = field(default=())

    @property
    def has_documents(self) -> bool:
        return self.index is not None

    @property
    def state(self) -> str:
        return "ready" if self.has_documents else "empty"

    def with_index(self, index: VectorIndex, paths: list[Path]) -> Session:
        """Replace the index wholesale and take ownership of *paths*."""
        owned = self.owned_paths + tuple(p for p in paths if p not in self.owned_paths)
        return replace(self, index=index, owned_paths=owned)

    def with_messages(self, *messages: ChatMessage) -> Session:
        return replace(self, chat_history=self.chat_history + messages)

    def touched(self, now: datetime) -> Session:
        return replace(self, last_activity=now)


@dataclass(frozen=True)
class ClearResult:
    """Outcome of :meth:`SessionStore.clear`."""

    cleared: bool
    owned_paths: tuple[Path, ...] = ()
