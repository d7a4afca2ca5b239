"""Tests for LLMClient provider abstraction."""

import logging

import pytest
from unittest.mock import MagicMock, patch

from ragpipe.common.llm_client import LLMClient


class TestLLMClientInit:
    def test_missing_anthropic_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="ragpipe.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_openai_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="ragpipe.common.llm_client"):
            client = LLMClient(provider="openai")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_google_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="ragpipe.common.llm_client"):
            client = LLMClient(provider="google")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="ragpipe.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_from_config_uses_active_model(self):
        from ragpipe.common.config import LLMConfig
        client = LLMClient.from_config(LLMConfig(provider="OpenAI", openai_model="gpt-4o"))
        assert client.provider == "openai"
        assert client.model == "gpt-4o"
        assert not client.is_available


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_anthropic_generate(self):
        client = LLMClient(provider="anthropic", model="claude-test")
        client._client = MagicMock()
        client._client.messages.create.return_value.content = [MagicMock(text="  answer \n")]

        assert client.generate("prompt", max_tokens=50, temperature=0.1) == "answer"

        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 50
        assert kwargs["temperature"] == 0.1
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    def test_openai_generate_handles_empty_content(self):
        client = LLMClient(provider="openai", model="gpt-test")
        client._client = MagicMock()
        client._client.chat.completions.create.return_value.choices = [
            MagicMock(message=MagicMock(content=None))
        ]

        assert client.generate("prompt") == ""


class TestLLMClientComplete:
    @pytest.mark.asyncio
    async def test_complete_delegates_to_generate(self):
        client = LLMClient(provider="anthropic")
        with patch.object(client, "generate", return_value="java, backend") as generate:
            result = await client.complete("expand", max_tokens=150, temperature=0.3)

        assert result == "java, backend"
        generate.assert_called_once_with("expand", max_tokens=150, temperature=0.3)

    @pytest.mark.asyncio
    async def test_complete_propagates_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            await client.complete("expand", max_tokens=150, temperature=0.3)
