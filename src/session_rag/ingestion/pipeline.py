"""Document ingestion pipeline — load → split → embed → index → attach.

Every stage can fail on its own.  Only the final attach touches session
state, and it does so through a single :meth:`SessionStore.update`, so a
session either gets the complete new index or keeps the one it had.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from session_rag.errors import NoDocumentsLoaded, ProviderError, SessionNotFound, ValidationError
from session_rag.ingestion.chunker import chunk_documents
from session_rag.ingestion.loader import check_supported, load_documents
from session_rag.retrieval.base import VectorIndex

if TYPE_CHECKING:
    from langchain_core.documents import Document
    from langchain_core.embeddings import Embeddings

    from session_rag.sessions.models import Session
    from session_rag.sessions.store import SessionStore

logger = logging.getLogger(__name__)

IndexFactory = Callable[[list["Document"], list[list[float]]], VectorIndex]


def _default_index_factory(chunks: list[Document], vectors: list[list[float]]) -> VectorIndex:
    from session_rag.retrieval.chroma_store import ChromaVectorIndex

    return ChromaVectorIndex.from_embeddings(chunks, vectors)


@dataclass(frozen=True)
class IngestionResult:
    """Summary of one successful ingestion batch."""

    file_count: int
    document_count: int
    chunk_count: int


class DocumentIngestionPipeline:
    """Turns uploaded files into a session's vector index.

    Parameters
    ----------
    store:
        Registry holding the session the index is attached to.
    embeddings:
        Embedding provider used for every chunk.
    index_factory:
        Builds a :class:`VectorIndex` from chunks and their vectors.
    chunk_size, chunk_overlap:
        Splitter parameters.
    """

    def __init__(
        self,
        store: SessionStore,
        embeddings: Embeddings,
        *,
        index_factory: IndexFactory | None = None,
        chunk_size: int = 600,
        chunk_overlap: int = 150,
    ) -> None:
        self._store = store
        self._embeddings = embeddings
        self._index_factory = index_factory or _default_index_factory
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def ingest(self, session_id: str, paths: list[str | Path]) -> IngestionResult:
        """Build a fresh index from *paths* and attach it to the session."""
        if not paths:
            raise ValidationError("No files uploaded")
        check_supported(paths)
        if not self._store.exists(session_id):
            raise SessionNotFound(session_id)
        logger.info("Processing %d documents for session %s", len(paths), session_id)

        documents, loaded = load_documents(paths)
        chunks = self._split(documents)
        index = self._build_index(chunks)
        self._attach(session_id, index, [Path(p) for p in paths])

        result = IngestionResult(
            file_count=len(paths),
            document_count=len(loaded),
            chunk_count=len(chunks),
        )
        logger.info(
            "Session %s ready: %d chunks from %d documents",
            session_id,
            result.chunk_count,
            result.document_count,
        )
        return result

    # -- stages ---------------------------------------------------------------

    def _split(self, documents: list[Document]) -> list[Document]:
        chunks = chunk_documents(documents, self.chunk_size, self.chunk_overlap)
        logger.info("Created %d chunks from %d documents", len(chunks), len(documents))
        if not chunks:
            raise NoDocumentsLoaded("No text could be extracted from the uploaded documents")
        return chunks

    def _build_index(self, chunks: list[Document]) -> VectorIndex:
        try:
            vectors = self._embeddings.embed_documents([c.page_content for c in chunks])
            return self._index_factory(chunks, vectors)
        except Exception as exc:
            logger.exception("Failed to build vector index")
            raise ProviderError(f"Failed to create vector store: {exc}") from exc

    def _attach(self, session_id: str, index: VectorIndex, paths: list[Path]) -> None:
        superseded: list[VectorIndex] = []

        def attach(session: Session) -> Session:
            if session.index is not None:
                superseded.append(session.index)
            return session.with_index(index, paths)

        try:
            self._store.update(session_id, attach)
        except Exception:
            # Nobody owns the new index; free it before propagating.
            index.release()
            raise

        for old in superseded:
            old.release()
