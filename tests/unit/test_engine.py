"""Unit tests for the RAG chat engine and its prompt.

All tests run without an LLM, embedding model or vector database by
injecting the fakes from ``conftest``.
"""

from __future__ import annotations

import threading

import pytest
from conftest import FailingLLM, GroundedFakeLLM, KeywordEmbeddings, make_ready_session
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from session_rag.chat.engine import RAGChatEngine
from session_rag.chat.prompts import NO_ANSWER, build_rag_prompt, format_context
from session_rag.errors import NoDocumentsUploaded, ProviderError, SessionNotFound, ValidationError
from session_rag.retrieval.models import RetrievedChunk
from session_rag.sessions.store import SessionStore

HANDBOOK = [
    "Employees receive twenty-five vacation days per year.",
    "The office opens at eight in the morning.",
    "Expense reports must be filed within thirty days.",
    "Remote work is allowed two days per week.",
]


@pytest.fixture()
def llm() -> GroundedFakeLLM:
    return GroundedFakeLLM()


@pytest.fixture()
def engine(store: SessionStore, embeddings: KeywordEmbeddings, llm: GroundedFakeLLM) -> RAGChatEngine:
    return RAGChatEngine(store, embeddings, llm, k=3)


# ═══════════════════════════════════════════════════════════════════════
# Prompt
# ═══════════════════════════════════════════════════════════════════════


class TestPrompt:
    def test_system_prompt_carries_grounding_rules(self) -> None:
        system, _ = build_rag_prompt("q", [])
        assert isinstance(system, SystemMessage)
        assert "ONLY from the provided document context" in system.content
        assert NO_ANSWER in system.content

    def test_context_joined_by_blank_lines_in_order(self) -> None:
        chunks = [RetrievedChunk(content="first", score=0.9), RetrievedChunk(content="second", score=0.5)]
        assert format_context(chunks) == "first\n\nsecond"
        _, human = build_rag_prompt("Why?", chunks)
        assert isinstance(human, HumanMessage)
        assert human.content == "Context:\nfirst\n\nsecond\n\nQuestion: Why?\n\nAnswer:"


# ═══════════════════════════════════════════════════════════════════════
# Stages
# ═══════════════════════════════════════════════════════════════════════


class TestChat:
    def test_chat_before_upload_fails(self, engine: RAGChatEngine, store: SessionStore) -> None:
        session_id = store.create()
        with pytest.raises(NoDocumentsUploaded):
            engine.chat(session_id, "Anything?")
        assert store.get(session_id).chat_history == ()

    def test_unknown_session(self, engine: RAGChatEngine) -> None:
        with pytest.raises(SessionNotFound):
            engine.chat("missing", "Anything?")

    @pytest.mark.parametrize("question", ["", "   ", None, 42])
    def test_invalid_question(self, engine: RAGChatEngine, store: SessionStore, question) -> None:
        session_id, _ = make_ready_session(store, KeywordEmbeddings(), HANDBOOK)
        with pytest.raises(ValidationError):
            engine.chat(session_id, question)

    def test_successful_turn_records_two_messages(
        self, engine: RAGChatEngine, store: SessionStore, embeddings: KeywordEmbeddings
    ) -> None:
        session_id, _ = make_ready_session(store, embeddings, HANDBOOK)

        turn = engine.chat(session_id, "How many vacation days do employees get?")

        assert "twenty-five vacation days" in turn.answer
        history = store.get(session_id).chat_history
        assert [m.role for m in history] == ["user", "assistant"]
        assert history[0].content == "How many vacation days do employees get?"
        assert history[1].content == turn.answer
        assert history[0].timestamp <= history[1].timestamp
        assert engine.history(session_id) == history

    def test_question_is_stripped(
        self, engine: RAGChatEngine, store: SessionStore, embeddings: KeywordEmbeddings
    ) -> None:
        session_id, _ = make_ready_session(store, embeddings, HANDBOOK)
        turn = engine.chat(session_id, "  When does the office open?  ")
        assert turn.question == "When does the office open?"

    def test_prompt_uses_top_three_chunks_most_similar_first(
        self,
        engine: RAGChatEngine,
        store: SessionStore,
        embeddings: KeywordEmbeddings,
        llm: GroundedFakeLLM,
    ) -> None:
        session_id, _ = make_ready_session(store, embeddings, HANDBOOK)

        turn = engine.chat(session_id, "When must expense reports be filed?")

        assert len(turn.chunks) == 3
        scores = [c.score for c in turn.chunks]
        assert scores == sorted(scores, reverse=True)
        assert turn.chunks[0].content == HANDBOOK[2]
        human = llm.prompts[-1][-1].content
        assert format_context(list(turn.chunks)) in human

    def test_unanswerable_question_admits_ignorance(
        self, engine: RAGChatEngine, store: SessionStore, embeddings: KeywordEmbeddings
    ) -> None:
        session_id, _ = make_ready_session(store, embeddings, HANDBOOK)
        turn = engine.chat(session_id, "What is the capital of Mongolia?")
        assert "don't know" in turn.answer.lower()

    def test_history_is_not_sent_to_the_model(
        self,
        engine: RAGChatEngine,
        store: SessionStore,
        embeddings: KeywordEmbeddings,
        llm: GroundedFakeLLM,
    ) -> None:
        session_id, _ = make_ready_session(store, embeddings, HANDBOOK)
        engine.chat(session_id, "When does the office open?")
        engine.chat(session_id, "How many remote work days are allowed?")
        assert len(llm.prompts[-1]) == 2
        assert "When does the office open?" not in llm.prompts[-1][-1].content

    def test_generation_failure_records_nothing(
        self, store: SessionStore, embeddings: KeywordEmbeddings
    ) -> None:
        engine = RAGChatEngine(store, embeddings, FailingLLM())
        session_id, _ = make_ready_session(store, embeddings, HANDBOOK)
        with pytest.raises(ProviderError):
            engine.chat(session_id, "When does the office open?")
        assert store.get(session_id).chat_history == ()

    def test_retrieval_failure_records_nothing(
        self, engine: RAGChatEngine, store: SessionStore, embeddings: KeywordEmbeddings
    ) -> None:
        session_id, index = make_ready_session(store, embeddings, HANDBOOK)
        index.release()
        with pytest.raises(ProviderError):
            engine.chat(session_id, "When does the office open?")
        assert store.get(session_id).chat_history == ()

    def test_reupload_during_retrieval_answers_from_new_index(
        self, store: SessionStore, embeddings: KeywordEmbeddings
    ) -> None:
        session_id, old_index = make_ready_session(store, embeddings, HANDBOOK)
        replacement = ["The office now opens at nine in the morning."]
        _, new_index = make_ready_session(store, embeddings, replacement, source="new.pdf")

        class ReuploadingEmbeddings(KeywordEmbeddings):
            swapped = False

            def embed_query(self, text: str) -> list[float]:
                if not self.swapped:
                    self.swapped = True
                    store.update(session_id, lambda s: s.with_index(new_index, []))
                    old_index.release()
                return super().embed_query(text)

        llm = GroundedFakeLLM()
        engine = RAGChatEngine(store, ReuploadingEmbeddings(), llm)

        turn = engine.chat(session_id, "When does the office open?")

        assert {c.source for c in turn.chunks} == {"new.pdf"}
        assert "nine" in turn.answer
        assert len(store.get(session_id).chat_history) == 2

    def test_session_cleared_during_generation(
        self, store: SessionStore, embeddings: KeywordEmbeddings
    ) -> None:
        session_id, _ = make_ready_session(store, embeddings, HANDBOOK)

        class ClearingLLM:
            def invoke(self, messages):
                store.clear(session_id)
                return AIMessage(content="late answer")

        engine = RAGChatEngine(store, embeddings, ClearingLLM())
        with pytest.raises(SessionNotFound):
            engine.chat(session_id, "When does the office open?")
        assert not store.exists(session_id)

    def test_plain_string_output_is_accepted(
        self, store: SessionStore, embeddings: KeywordEmbeddings
    ) -> None:
        class StringLLM:
            def invoke(self, messages):
                return "  plain text answer \n"

        engine = RAGChatEngine(store, embeddings, StringLLM())
        session_id, _ = make_ready_session(store, embeddings, HANDBOOK)
        assert engine.chat(session_id, "Anything about the office?").answer == "plain text answer"


# ═══════════════════════════════════════════════════════════════════════
# Isolation
# ═══════════════════════════════════════════════════════════════════════


def test_concurrent_sessions_do_not_share_context(store: SessionStore, embeddings: KeywordEmbeddings) -> None:
    garden = [
        "Tomatoes need six hours of sun.",
        "Water the basil every morning.",
        "Compost improves clay soil.",
    ]
    space = [
        "Mars has two small moons.",
        "Jupiter is the largest planet.",
        "Saturn rings are mostly ice.",
    ]
    llm = GroundedFakeLLM()
    engine = RAGChatEngine(store, embeddings, llm)
    garden_id, _ = make_ready_session(store, embeddings, garden, source="garden.pdf")
    space_id, _ = make_ready_session(store, embeddings, space, source="space.pdf")

    barrier = threading.Barrier(2)
    turns = {}

    def ask(session_id: str, question: str) -> None:
        barrier.wait(timeout=5)
        turns[session_id] = engine.chat(session_id, question)

    threads = [
        threading.Thread(target=ask, args=(garden_id, "How much sun do tomatoes need?")),
        threading.Thread(target=ask, args=(space_id, "Which planet is the largest?")),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert {c.source for c in turns[garden_id].chunks} == {"garden.pdf"}
    assert {c.source for c in turns[space_id].chunks} == {"space.pdf"}
    assert "Tomatoes" in turns[garden_id].answer
    assert "Jupiter" in turns[space_id].answer

    garden_history = [m.content for m in store.get(garden_id).chat_history]
    space_history = [m.content for m in store.get(space_id).chat_history]
    assert garden_history[0] == "How much sun do tomatoes need?"
    assert space_history[0] == "Which planet is the largest?"
    assert len(garden_history) == len(space_history) == 2
