"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible server** — set ``LLM_BASE_URL`` to a self-hosted
   endpoint (vLLM, Ollama, LM Studio, ...).  These expose
   ``/v1/chat/completions``, so ``ChatOpenAI`` works unchanged.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from session_rag.config import Settings, settings

logger = logging.getLogger(__name__)


def get_llm(temperature: float = 0.0, config: Settings | None = None) -> ChatOpenAI:
    """Return the configured chat model.

    When ``llm_base_url`` is set the client is pointed at that endpoint
    instead of the OpenAI cloud API.  A dummy API key (``"EMPTY"``) is used
    because local servers usually do not require authentication.
    """
    config = config or settings
    kwargs: dict = {
        "model": config.llm_model_name,
        "temperature": temperature,
    }

    if config.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", config.llm_base_url)
        kwargs["base_url"] = config.llm_base_url
        # LangChain requires a non-empty value.
        kwargs["api_key"] = config.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = config.openai_api_key

    return ChatOpenAI(**kwargs)
