"""
Retrieval — per-session vector indexes and similarity search.

This module wraps the vector backend behind a clean interface so that the
ingestion and chat layers never need to know which library holds the
embeddings.

Public surface
--------------
- :class:`VectorIndex` — abstract per-session index.
- :class:`ChromaVectorIndex` — default in-process Chroma backend.
- :class:`SemanticRetriever` — question → top-k :class:`RetrievedChunk`.
"""

from session_rag.retrieval.base import VectorIndex
from session_rag.retrieval.models import RetrievedChunk
from session_rag.retrieval.retriever import SemanticRetriever

__all__ = [
    "ChromaVectorIndex",
    "RetrievedChunk",
    "SemanticRetriever",
    "VectorIndex",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorIndex to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorIndex":
        from session_rag.retrieval.chroma_store import ChromaVectorIndex

        return ChromaVectorIndex
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
