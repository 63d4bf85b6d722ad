"""Chroma implementation of the per-session vector index."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import chromadb

from session_rag.retrieval.base import VectorIndex

if TYPE_CHECKING:
    from langchain_core.documents import Document

logger = logging.getLogger(__name__)

# Chroma rejects very large single ``add`` calls.
_ADD_BATCH_SIZE = 1000


def _clean_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Keep only the scalar metadata values Chroma accepts."""
    return {
        key: value
        for key, value in metadata.items()
        if isinstance(value, (str, int, float, bool))
    }


class ChromaVectorIndex(VectorIndex):
    """Chroma-backed, in-process vector index.

    Each instance owns one collection in an ephemeral (memory-only) Chroma
    client.  :meth:`release` drops the collection so the memory is reclaimed
    as soon as the owning session goes away.

    Parameters
    ----------
    client:
        Chroma client; defaults to a process-local ``EphemeralClient``.
    collection_name:
        Name of the collection; a unique one is generated when omitted.
    """

    def __init__(
        self,
        *,
        client: Any | None = None,
        collection_name: str | None = None,
    ) -> None:
        self._client = client if client is not None else chromadb.EphemeralClient()
        self.collection_name = collection_name or f"session-index-{uuid4().hex}"
        # Embeddings are always supplied by the caller.
        self._collection = self._client.create_collection(
            self.collection_name,
            embedding_function=None,
        )
        self._count = 0
        self._released = False
        self._lock = threading.Lock()

    @classmethod
    def from_embeddings(
        cls,
        chunks: list[Document],
        embeddings: list[list[float]],
        **kwargs: Any,
    ) -> ChromaVectorIndex:
        """Build an index holding *chunks* with their pre-computed *embeddings*."""
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
            )
        index = cls(**kwargs)
        try:
            index._add(chunks, embeddings)
        except Exception:
            index.release()
            raise
        return index

    def _add(self, chunks: list[Document], embeddings: list[list[float]]) -> None:
        for start in range(0, len(chunks), _ADD_BATCH_SIZE):
            batch = chunks[start : start + _ADD_BATCH_SIZE]
            self._collection.add(
                ids=[f"chunk-{start + i}" for i in range(len(batch))],
                embeddings=embeddings[start : start + _ADD_BATCH_SIZE],
                documents=[doc.page_content for doc in batch],
                metadatas=[_clean_metadata(doc.metadata) or {"source": "unknown"} for doc in batch],
            )
        self._count += len(chunks)

    # -- VectorIndex overrides ------------------------------------------------

    def similarity_search(self, query_embedding: list[float], *, k: int = 3) -> list[dict[str, Any]]:
        if self._released:
            raise RuntimeError(f"Index {self.collection_name} has been released")
        if self._count == 0:
            return []

        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=min(k, self._count),
            include=["documents", "metadatas", "distances"],
        )

        hits: list[dict[str, Any]] = []
        ids = results.get("ids", [[]])[0]
        docs = results.get("documents", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]

        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            # Chroma returns L2 distances; convert to a 0-1 similarity score.
            score = 1.0 / (1.0 + dist)
            hits.append(
                {
                    "id": doc_id,
                    "content": content or "",
                    "score": score,
                    "metadata": meta or {},
                }
            )
        return hits

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        try:
            self._client.delete_collection(self.collection_name)
        except Exception:
            logger.warning("Failed to drop Chroma collection %s", self.collection_name, exc_info=True)
        self._count = 0

    @property
    def released(self) -> bool:
        return self._released

    def __len__(self) -> int:
        return self._count
