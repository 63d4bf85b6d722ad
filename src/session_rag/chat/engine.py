"""RAG chat engine — one question, one grounded answer.

A turn is a fixed sequence of stages::

    validate → resolve session → retrieve → compose prompt → generate → record

Each stage is a method that either returns its output or raises a
:class:`~session_rag.errors.SessionRAGError`, so failures can be tested
stage by stage.  History is written only by the last stage; a turn that
fails earlier leaves the session unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from langchain_core.output_parsers import StrOutputParser

from session_rag.chat.prompts import build_rag_prompt
from session_rag.errors import NoDocumentsUploaded, ProviderError, ValidationError
from session_rag.retrieval.retriever import SemanticRetriever
from session_rag.sessions.models import ChatMessage, utcnow

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings
    from langchain_core.messages import BaseMessage

    from session_rag.retrieval.base import VectorIndex
    from session_rag.retrieval.models import RetrievedChunk
    from session_rag.sessions.models import Session
    from session_rag.sessions.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatTurn:
    """A completed question / answer exchange."""

    question: str
    answer: str
    timestamp: datetime
    chunks: tuple[RetrievedChunk, ...] = ()


class RAGChatEngine:
    """Answers questions from the documents of a single session.

    Parameters
    ----------
    store:
        Session registry.
    embeddings:
        Embedding provider; must match the one used at ingestion.
    llm:
        Generation provider — any LangChain chat model (or object with a
        compatible ``invoke``).
    k:
        Number of chunks retrieved per question.
    """

    def __init__(
        self,
        store: SessionStore,
        embeddings: Embeddings,
        llm: Any,
        *,
        k: int = 3,
    ) -> None:
        self._store = store
        self._llm = llm
        self._retriever = SemanticRetriever(embeddings, default_k=k)
        self._parser = StrOutputParser()
        self.k = k

    def chat(self, session_id: str, question: str) -> ChatTurn:
        question = self._validate(question)
        session = self._resolve(session_id)
        chunks = self._retrieve(session_id, session.index, question)
        prompt = self._compose(question, chunks)
        answer = self._generate(prompt)
        timestamp = self._record(session_id, question, answer)
        return ChatTurn(question=question, answer=answer, timestamp=timestamp, chunks=tuple(chunks))

    def history(self, session_id: str) -> tuple[ChatMessage, ...]:
        return self._store.get(session_id).chat_history

    # -- stages ---------------------------------------------------------------

    def _validate(self, question: Any) -> str:
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Question is required")
        return question.strip()

    def _resolve(self, session_id: str) -> Session:
        session = self._store.get(session_id)
        if session.index is None:
            raise NoDocumentsUploaded()
        return session

    def _retrieve(self, session_id: str, index: VectorIndex, question: str) -> list[RetrievedChunk]:
        try:
            chunks = self._retriever.search(index, question, k=self.k)
        except Exception as exc:
            current = self._resolve(session_id).index if index.released else index
            if current is index:
                logger.exception("Retrieval failed")
                raise ProviderError(f"Retrieval failed: {exc}") from exc
            # A re-upload superseded the index mid-turn; answer from its replacement.
            logger.info("Index of session %s was replaced, retrying retrieval", session_id)
            chunks = self._retrieve(session_id, current, question)
        logger.debug("Retrieved %d chunk(s)", len(chunks))
        return chunks

    def _compose(self, question: str, chunks: list[RetrievedChunk]) -> list[BaseMessage]:
        return build_rag_prompt(question, chunks)

    def _generate(self, prompt: list[BaseMessage]) -> str:
        try:
            response = self._llm.invoke(prompt)
            return self._parser.invoke(response).strip()
        except Exception as exc:
            logger.exception("Generation failed")
            raise ProviderError(f"Generation failed: {exc}") from exc

    def _record(self, session_id: str, question: str, answer: str) -> datetime:
        now = utcnow()
        self._store.update(
            session_id,
            lambda session: session.with_messages(
                ChatMessage(role="user", content=question, timestamp=now),
                ChatMessage(role="assistant", content=answer, timestamp=utcnow()),
            ),
        )
        return now
