"""Semantic retriever — embeds the question and queries a session index.

Usage::

    from session_rag.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever(embeddings, default_k=3)
    for chunk in retriever.search(session.index, "What is the refund policy?"):
        print(chunk.score, chunk.content[:80])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from session_rag.retrieval.models import RetrievedChunk

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from session_rag.retrieval.base import VectorIndex

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """Turns a question into the *k* most similar chunks of an index.

    Parameters
    ----------
    embeddings:
        Embedding provider; must be the same model the index was built with.
    default_k:
        Default number of results returned by :meth:`search`.
    """

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        default_k: int = 3,
    ) -> None:
        self._embeddings = embeddings
        self.default_k = default_k

    def search(self, index: VectorIndex, query: str, *, k: int | None = None) -> list[RetrievedChunk]:
        """Run a semantic search against *index*.

        Returns
        -------
        list[RetrievedChunk]
            At most *k* chunks, ordered by descending similarity.
        """
        embedding = self._embeddings.embed_query(query)
        return self.search_by_embedding(index, embedding, k=k)

    def search_by_embedding(
        self,
        index: VectorIndex,
        embedding: list[float],
        *,
        k: int | None = None,
    ) -> list[RetrievedChunk]:
        """Same as :meth:`search` but accepts a pre-computed embedding."""
        k = k or self.default_k
        raw_hits = index.similarity_search(embedding, k=k)
        results = self._to_results(raw_hits)
        results.sort(key=lambda r: r.score if r.score is not None else float("-inf"), reverse=True)
        return results[:k]

    def _to_results(self, raw_hits: list[dict[str, Any]]) -> list[RetrievedChunk]:
        results: list[RetrievedChunk] = []
        for hit in raw_hits:
            meta = hit.get("metadata", {})
            results.append(
                RetrievedChunk(
                    content=hit.get("content", ""),
                    source=meta.get("source", "unknown"),
                    chunk_index=meta.get("chunk_index"),
                    page=meta.get("page"),
                    score=hit.get("score"),
                )
            )
        return results
