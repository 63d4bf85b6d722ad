"""Abstract base class for per-session vector indexes.

A :class:`VectorIndex` is built once from one ingestion batch and is owned
by exactly one session.  Adding a new backend (FAISS, Qdrant, ...) only
requires subclassing and implementing the abstract methods; the ingestion
pipeline and chat engine never see the concrete type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class VectorIndex(ABC):
    """Backend-agnostic nearest-neighbour index over chunk embeddings."""

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def similarity_search(self, query_embedding: list[float], *, k: int = 3) -> list[dict[str, Any]]:
        """Return the top-*k* chunks closest to *query_embedding*.

        Each result dict **must** contain at least:

        * ``"id"`` – chunk identifier
        * ``"content"`` – the chunk text
        * ``"score"`` – similarity score (higher = more similar)
        * ``"metadata"`` – metadata of the originating chunk
        """
        ...

    @abstractmethod
    def release(self) -> None:
        """Free the memory held by the index.  Must be idempotent."""
        ...

    @abstractmethod
    def __len__(self) -> int:
        """Number of chunks stored in the index."""
        ...

    # -- optional overrides ---------------------------------------------------

    @property
    def released(self) -> bool:
        return False
