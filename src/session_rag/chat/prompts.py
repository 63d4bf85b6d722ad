"""Prompt templates for grounded question answering.

The system prompt is a correctness contract, not formatting: the model
must answer only from the retrieved context and must admit when the
context does not contain the answer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from session_rag.retrieval.models import RetrievedChunk

NO_ANSWER = "I don't know"

SYSTEM_PROMPT = f"""\
You are a helpful assistant.
Answer ONLY from the provided document context.
Do not use outside knowledge and do not guess.
If the context is insufficient to answer the question, just say
"{NO_ANSWER}" and nothing more.
"""


def format_context(chunks: list[RetrievedChunk]) -> str:
    """Join chunk texts with blank lines, keeping the retrieval order."""
    return "\n\n".join(chunk.content for chunk in chunks)


def build_rag_prompt(question: str, chunks: list[RetrievedChunk]) -> list[BaseMessage]:
    """Assemble the prompt messages for one retrieval-augmented turn.

    Parameters
    ----------
    question:
        The user question.
    chunks:
        Retrieved context, most similar first.

    Returns
    -------
    list[BaseMessage]
        A list of LangChain message objects ready for ``.invoke()``.
    """
    user_msg = (
        f"Context:\n{format_context(chunks)}\n\n"
        f"Question: {question}\n\n"
        "Answer:"
    )
    return [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=user_msg),
    ]
