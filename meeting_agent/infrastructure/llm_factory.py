"""LLM factory: decide from environment variables whether an LLM is available.

Supported variables (in priority order):
  OPENAI_API_KEY     -> OpenAI
  DASHSCOPE_API_KEY  -> DashScope OpenAI-compatible endpoint
  LLM_API_KEY        -> any OpenAI-compatible endpoint (with LLM_BASE_URL)

Optional:
  LLM_MODEL    - model name, defaults per provider
  LLM_BASE_URL - custom base_url
"""

from __future__ import annotations

import os
from typing import Optional

from langchain_openai import ChatOpenAI

_DASHSCOPE_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
_DASHSCOPE_DEFAULT_MODEL = "qwen-plus"
_OPENAI_BASE_URL = "https://api.openai.com/v1"
_OPENAI_DEFAULT_MODEL = "gpt-4o-mini"


def _resolve_config() -> tuple[str, str, str] | None:
    """Return (api_key, base_url, model) or None."""
    oai_key = os.getenv("OPENAI_API_KEY")
    if oai_key:
        return (
            oai_key,
            os.getenv("LLM_BASE_URL", _OPENAI_BASE_URL),
            os.getenv("LLM_MODEL", _OPENAI_DEFAULT_MODEL),
        )

    ds_key = os.getenv("DASHSCOPE_API_KEY")
    if ds_key:
        return (
            ds_key,
            os.getenv("LLM_BASE_URL", _DASHSCOPE_BASE_URL),
            os.getenv("LLM_MODEL", _DASHSCOPE_DEFAULT_MODEL),
        )

    llm_key = os.getenv("LLM_API_KEY")
    if llm_key:
        return (
            llm_key,
            os.getenv("LLM_BASE_URL", _OPENAI_BASE_URL),
            os.getenv("LLM_MODEL", _OPENAI_DEFAULT_MODEL),
        )

    return None


# single LLM request timeout (seconds); retries are handled by infrastructure.retry
_LLM_TIMEOUT = int(os.getenv("LLM_TIMEOUT_SECONDS", "45"))

_llm_instance: Optional[ChatOpenAI] = None
_llm_resolved: bool = False  # distinguishes "no key" from "not initialised"


def get_llm() -> Optional[ChatOpenAI]:
    """Chat model singleton, or None when no key is configured (template mode)."""
    global _llm_instance, _llm_resolved
    if _llm_resolved:
        return _llm_instance

    cfg = _resolve_config()
    if cfg is None:
        _llm_resolved = True
        _llm_instance = None
        return None

    api_key, base_url, model = cfg
    _llm_instance = ChatOpenAI(
        model=model,
        temperature=0.2,
        api_key=api_key,
        base_url=base_url,
        timeout=_LLM_TIMEOUT,
        max_retries=0,
    )
    _llm_resolved = True
    return _llm_instance


def reset_llm() -> None:
    """Reset the singleton (tests)."""
    global _llm_instance, _llm_resolved
    _llm_instance = None
    _llm_resolved = False


def is_llm_available() -> bool:
    return _resolve_config() is not None
