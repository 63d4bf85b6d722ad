"""
Chat — grounded question answering over a session's documents.

Public API
----------
- :class:`RAGChatEngine` — run one question / answer turn.
- :class:`ChatTurn` — result of a turn.
- :func:`build_rag_prompt` — the grounding prompt.
"""

from session_rag.chat.engine import ChatTurn, RAGChatEngine
from session_rag.chat.prompts import build_rag_prompt

__all__ = ["ChatTurn", "RAGChatEngine", "build_rag_prompt"]
