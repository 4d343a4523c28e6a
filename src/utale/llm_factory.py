"""Utilities for constructing the chat model used to write stories."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from langchain.chat_models import init_chat_model

from utale.utils import split_model_and_provider

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from utale.context import UtaleContext

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "openai"


def coerce_message_content(content: Any) -> str:
    """Convert LangChain message content (which may be structured) into text."""

    if content is None:
        return ""

    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if item is None:
                continue
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict):
                text = item.get("text") or item.get("content")
                if text:
                    parts.append(str(text))
            else:
                parts.append(str(item))
        return "".join(parts)

    if isinstance(content, bytes):
        return content.decode("utf-8", errors="ignore")

    return str(content)


def create_chat_model(
    *,
    model: str,
    api_key: str | None,
    temperature: float = 0.7,
    max_tokens: int | None = None,
    timeout: float | None = None,
) -> Any:
    """Instantiate a chat model for ``model`` given as ``provider/model``.

    A bare model name is treated as an OpenAI model. OpenAI models are
    asked for JSON object output, which the story prompt relies on.
    """
    provider, model_name = split_model_and_provider(model, DEFAULT_PROVIDER)

    if provider == "openai" and not api_key:
        raise ValueError("OpenAI API key is required when using the OpenAI provider")

    kwargs: dict[str, Any] = {"temperature": temperature}
    if api_key:
        kwargs["api_key"] = api_key
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    if timeout is not None:
        kwargs["timeout"] = timeout
    if provider == "openai":
        kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}

    logger.debug("Creating chat model %s (provider=%s)", model_name, provider)
    return init_chat_model(model=model_name, model_provider=provider, **kwargs)


def create_chat_model_from_context(context: UtaleContext) -> Any:
    """Convenience helper to create a chat model using context configuration."""
    return create_chat_model(
        model=context.model,
        api_key=context.openai_api_key,
        temperature=context.temperature,
        max_tokens=context.max_tokens,
        timeout=context.llm_timeout,
    )
