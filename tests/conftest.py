"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import math
import re
import zlib
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessage, BaseMessage

from session_rag.retrieval.base import VectorIndex
from session_rag.sessions.store import SessionStore


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class KeywordEmbeddings(Embeddings):
    """Deterministic bag-of-words embeddings: texts sharing words score higher."""

    def __init__(self, size: int = 1024) -> None:
        self.size = size
        self.calls = 0

    def _embed(self, text: str) -> list[float]:
        vec = [0.0] * self.size
        for word in re.findall(r"[a-z]+", text.lower()):
            vec[zlib.crc32(word.encode()) % self.size] += 1.0
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [self._embed(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)


class FakeVectorIndex(VectorIndex):
    """In-memory index scoring by dot product."""

    def __init__(self, chunks: list[Document], vectors: list[list[float]]) -> None:
        self.chunks = list(chunks)
        self.vectors = list(vectors)
        self.release_calls = 0
        self._released = False

    def similarity_search(self, query_embedding: list[float], *, k: int = 3) -> list[dict[str, Any]]:
        if self._released:
            raise RuntimeError("index released")
        scored = [
            (sum(a * b for a, b in zip(query_embedding, vec)), i)
            for i, vec in enumerate(self.vectors)
        ]
        scored.sort(reverse=True)
        return [
            {
                "id": f"chunk-{i}",
                "content": self.chunks[i].page_content,
                "score": score,
                "metadata": dict(self.chunks[i].metadata),
            }
            for score, i in scored[:k]
        ]

    def release(self) -> None:
        self.release_calls += 1
        self._released = True

    @property
    def released(self) -> bool:
        return self._released

    def __len__(self) -> int:
        return 0 if self._released else len(self.chunks)


class RecordingIndexFactory:
    """Index factory that keeps every index it builds."""

    def __init__(self) -> None:
        self.created: list[FakeVectorIndex] = []

    def __call__(self, chunks: list[Document], vectors: list[list[float]]) -> FakeVectorIndex:
        index = FakeVectorIndex(chunks, vectors)
        self.created.append(index)
        return index


_STOPWORDS = {"what", "which", "when", "where", "does", "about", "there", "with"}


class GroundedFakeLLM:
    """Chat-model stand-in that only answers from the prompt's context.

    Returns the first context sentence sharing a keyword with the question,
    or an admission that it does not know.
    """

    def __init__(self) -> None:
        self.prompts: list[list[BaseMessage]] = []

    def invoke(self, messages: list[BaseMessage]) -> AIMessage:
        self.prompts.append(messages)
        human = str(messages[-1].content)
        context, _, rest = human.partition("\n\nQuestion: ")
        context = context.removeprefix("Context:\n")
        question = rest.split("\n\n")[0]
        keywords = [
            w for w in re.findall(r"[a-z]+", question.lower()) if len(w) > 3 and w not in _STOPWORDS
        ]
        for sentence in context.replace("\n", " ").split("."):
            if any(k in sentence.lower() for k in keywords):
                return AIMessage(content=sentence.strip() + ".")
        return AIMessage(content="I don't know.")


class FailingLLM:
    def invoke(self, messages: list[BaseMessage]) -> AIMessage:
        raise ConnectionError("generation backend unavailable")


class FakeLoader:
    """Stands in for PyPDFLoader / Docx2txtLoader.

    Returns ``TEXTS[name]`` for a file name, or raises for names in ``BROKEN``.
    """

    TEXTS: dict[str, str] = {}
    BROKEN: set[str] = set()
    calls: list[str] = []

    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> list[Document]:
        FakeLoader.calls.append(self.path)
        name = Path(self.path).name.split("_")[-1]
        if name in FakeLoader.BROKEN:
            raise ValueError(f"cannot parse {name}")
        text = FakeLoader.TEXTS.get(name, f"Default text for {name}.")
        return [Document(page_content=text, metadata={"source": self.path, "page": 0})]


def unbroken_text(length: int) -> str:
    """Text without any separator the splitter could cut on."""
    alphabet = "abcdefghijklmnopqrstuvwxyz"
    return (alphabet * (length // len(alphabet) + 1))[:length]


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(ttl_seconds=1800, clock=clock)


@pytest.fixture()
def embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def index_factory() -> RecordingIndexFactory:
    return RecordingIndexFactory()


@pytest.fixture()
def fake_loaders(monkeypatch: pytest.MonkeyPatch) -> type[FakeLoader]:
    """Route PDF and DOCX loading through :class:`FakeLoader`."""
    from session_rag.ingestion import loader

    monkeypatch.setattr(FakeLoader, "TEXTS", {})
    monkeypatch.setattr(FakeLoader, "BROKEN", set())
    monkeypatch.setattr(FakeLoader, "calls", [])
    monkeypatch.setitem(loader.LOADERS, ".pdf", FakeLoader)
    monkeypatch.setitem(loader.LOADERS, ".docx", FakeLoader)
    return FakeLoader


def make_ready_session(
    store: SessionStore,
    embeddings: Embeddings,
    texts: list[str],
    source: str = "doc.pdf",
) -> tuple[str, FakeVectorIndex]:
    """Create a session whose index holds one chunk per text."""
    session_id = store.create()
    chunks = [
        Document(page_content=t, metadata={"source": source, "chunk_index": i})
        for i, t in enumerate(texts)
    ]
    index = FakeVectorIndex(chunks, embeddings.embed_documents(texts))
    store.update(session_id, lambda s: s.with_index(index, []))
    return session_id, index
