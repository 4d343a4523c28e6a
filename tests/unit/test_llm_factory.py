"""Tests for chat model construction."""

from unittest.mock import patch

import pytest

from utale.context import UtaleContext
from utale.llm_factory import coerce_message_content, create_chat_model, create_chat_model_from_context


class TestCreateChatModel:
    """Test create_chat_model argument handling."""

    def test_openai_model_requests_json(self):
        with patch("utale.llm_factory.init_chat_model") as init:
            create_chat_model(model="openai/gpt-4o", api_key="k", temperature=0.5, max_tokens=100)

        init.assert_called_once_with(
            model="gpt-4o",
            model_provider="openai",
            temperature=0.5,
            api_key="k",
            max_tokens=100,
            model_kwargs={"response_format": {"type": "json_object"}},
        )

    def test_bare_model_defaults_to_openai(self):
        with patch("utale.llm_factory.init_chat_model") as init:
            create_chat_model(model="gpt-4o-mini", api_key="k")
        assert init.call_args.kwargs["model_provider"] == "openai"
        assert init.call_args.kwargs["model"] == "gpt-4o-mini"

    def test_openai_requires_key(self):
        with pytest.raises(ValueError):
            create_chat_model(model="openai/gpt-4o", api_key=None)

    def test_other_provider(self):
        with patch("utale.llm_factory.init_chat_model") as init:
            create_chat_model(model="anthropic/claude-sonnet", api_key=None)
        kwargs = init.call_args.kwargs
        assert kwargs["model_provider"] == "anthropic"
        assert "model_kwargs" not in kwargs
        assert "api_key" not in kwargs

    def test_from_context(self):
        context = UtaleContext(openai_api_key="k", temperature=0.2, llm_timeout=30)
        with patch("utale.llm_factory.init_chat_model") as init:
            create_chat_model_from_context(context)
        kwargs = init.call_args.kwargs
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 2500
        assert kwargs["timeout"] == 30


class TestCoerceMessageContent:
    """Test conversion of message content to text."""

    def test_string(self):
        assert coerce_message_content("hola") == "hola"

    def test_none(self):
        assert coerce_message_content(None) == ""

    def test_content_blocks(self):
        content = [{"type": "text", "text": '{"a": '}, "1}", None]
        assert coerce_message_content(content) == '{"a": 1}'

    def test_bytes(self):
        assert coerce_message_content("¡hola!".encode("utf-8")) == "¡hola!"
