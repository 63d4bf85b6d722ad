"""Domain models for retrieval results."""

from __future__ import annotations

from pydantic import BaseModel


class RetrievedChunk(BaseModel):
    """A single retrieved passage with its provenance.

    Attributes
    ----------
    content:
        The chunk text, exactly as it was indexed.
    source:
        File the chunk was split from.
    chunk_index:
        Ordinal position of the chunk within its source document.
    page:
        Page number for PDF sources.
    score:
        Similarity score returned by the index (higher = more similar).
    """

    content: str
    source: str = "unknown"
    chunk_index: int | None = None
    page: int | None = None
    score: float | None = None
