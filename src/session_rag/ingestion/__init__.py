"""
Ingestion — document loading, chunking and indexing for one session.

Converts uploaded PDF / DOCX files into embedded chunks held in a
per-session :class:`~session_rag.retrieval.base.VectorIndex`.
"""

from session_rag.ingestion.pipeline import DocumentIngestionPipeline, IngestionResult

__all__ = ["DocumentIngestionPipeline", "IngestionResult"]
