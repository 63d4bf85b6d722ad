"""Construction of the long-lived components shared by all requests.

Everything is built explicitly from a :class:`Settings` instance and
handed to the FastAPI app; nothing lives in module-level globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from session_rag.chat.engine import RAGChatEngine
from session_rag.ingestion.pipeline import DocumentIngestionPipeline
from session_rag.sessions.cleanup import CleanupScheduler
from session_rag.sessions.resources import release_paths
from session_rag.sessions.store import SessionStore

if TYPE_CHECKING:
    from session_rag.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The components one server process runs with."""

    store: SessionStore
    scheduler: CleanupScheduler
    pipeline: DocumentIngestionPipeline
    engine: RAGChatEngine

    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self) -> None:
        """Stop the sweep, then drop every session and its files."""
        self.scheduler.stop()
        released = release_paths(self.store.close())
        logger.info("Session store closed (%d file(s) released)", released)


def build_services(config: Settings) -> Services:
    """Create the default production components for *config*."""
    from session_rag.chat.llm import get_llm
    from session_rag.ingestion.embedder import get_embedding_function

    embeddings = get_embedding_function(config.embedding_model)
    store = SessionStore(config.session_ttl_seconds)
    return Services(
        store=store,
        scheduler=CleanupScheduler(store, config.cleanup_interval_seconds),
        pipeline=DocumentIngestionPipeline(
            store,
            embeddings,
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
        ),
        engine=RAGChatEngine(store, embeddings, get_llm(config=config), k=config.retrieval_k),
    )
