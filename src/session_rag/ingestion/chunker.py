"""Text chunking strategies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_text_splitters import RecursiveCharacterTextSplitter

if TYPE_CHECKING:
    from langchain_core.documents import Document


def chunk_documents(
    documents: list[Document],
    chunk_size: int = 600,
    chunk_overlap: int = 150,
) -> list[Document]:
    """Split *documents* into overlapping chunks for embedding.

    Parameters
    ----------
    documents:
        Source documents produced by a loader.
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of overlapping characters between consecutive chunks of the
        same document.  Text is cut at paragraph, line, sentence and word
        boundaries first, so the overlap is the longest run of whole pieces
        that fits; unbroken text overlaps by exactly ``chunk_overlap``.

    Returns
    -------
    list[Document]
        Chunks carrying the source metadata plus a ``chunk_index`` that
        counts from 0 within each source file.
    """
    if chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
        )

    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        length_function=len,
        separators=["\n\n", "\n", ". ", " ", ""],
    )
    chunks = splitter.split_documents(documents)

    counters: dict[str, int] = {}
    for chunk in chunks:
        source = str(chunk.metadata.get("source", "unknown"))
        chunk.metadata["chunk_index"] = counters.get(source, 0)
        counters[source] = chunk.metadata["chunk_index"] + 1
    return chunks
