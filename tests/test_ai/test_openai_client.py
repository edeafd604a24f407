"""
Unit tests for OpenAI client integration.

Tests the OpenAI client with mocked API responses to ensure proper
integration without making real API calls.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
from openai import APIConnectionError

from ai.openai_client import OpenAIClient, build_prompt
from config.settings import InstructSettings


class TestBuildPrompt:
    """Test prompt construction."""

    @pytest.mark.unit
    def test_instruction_and_chunk_joined_by_delimiter(self):
        assert build_prompt("Summarize", "some text") == "Summarize\n\n###\n\nsome text"

    @pytest.mark.unit
    def test_empty_chunk_omits_delimiter(self):
        assert build_prompt("Summarize", "") == "Summarize"


class TestOpenAIClient:
    """Test the OpenAI client class."""

    @pytest.mark.unit
    @pytest.mark.ai
    def test_client_initialization(self):
        """Test OpenAI client initialization with API key."""
        with patch("ai.openai_client.AsyncOpenAI") as sdk_class:
            client = OpenAIClient(InstructSettings(api_key="test-key", request_timeout=12.0))

        sdk_class.assert_called_once_with(api_key="test-key", timeout=12.0, max_retries=0)
        assert client.client is sdk_class.return_value

    @pytest.mark.unit
    @pytest.mark.ai
    @pytest.mark.asyncio
    async def test_request_carries_settings(self, mock_openai_client):
        """The model, single user message and generation parameters come from settings."""
        settings = InstructSettings(
            api_key="k", model="gpt-4", temperature=0.5, max_tokens=100,
            top_p=0.9, frequency_penalty=0.1, presence_penalty=0.2,
        )
        client = OpenAIClient(settings, client=mock_openai_client)

        result = await client.complete("Summarize", "text")

        mock_openai_client.chat.completions.create.assert_awaited_once_with(
            model="gpt-4",
            messages=[{"role": "user", "content": "Summarize\n\n###\n\ntext"}],
            temperature=0.5,
            max_tokens=100,
            top_p=0.9,
            frequency_penalty=0.1,
            presence_penalty=0.2,
        )
        assert result.ok
        assert result.text == "completion for: text"

    @pytest.mark.unit
    @pytest.mark.ai
    @pytest.mark.asyncio
    async def test_empty_choices_gives_no_text(self, settings, chat_response):
        """A response without choices is an absent completion, not an error."""
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=chat_response(None))

        result = await OpenAIClient(settings, client=sdk).complete("Summarize", "text")

        assert result.text is None
        assert result.error is None
        assert not result.ok

    @pytest.mark.unit
    @pytest.mark.ai
    @pytest.mark.asyncio
    async def test_api_error_is_captured(self, settings):
        """SDK errors are returned on the result instead of raised."""
        sdk = MagicMock()
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        sdk.chat.completions.create = AsyncMock(side_effect=APIConnectionError(request=request))

        result = await OpenAIClient(settings, client=sdk).complete("Summarize", "text")

        assert result.text is None
        assert result.error.startswith("OpenAI API error")

    @pytest.mark.unit
    @pytest.mark.ai
    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """Without a key the client reports an error and never calls out."""
        with patch("ai.openai_client.AsyncOpenAI") as sdk_class:
            client = OpenAIClient(InstructSettings(api_key=""))
            result = await client.complete("Summarize")

        sdk_class.assert_not_called()
        assert result.error == "OpenAI API key is not configured"

    @pytest.mark.unit
    @pytest.mark.ai
    @pytest.mark.asyncio
    async def test_complete_many_preserves_order(self, settings, mock_openai_client):
        """Batch results line up with the input chunks."""
        client = OpenAIClient(settings, client=mock_openai_client)

        results = await client.complete_many("Expand", ["one", "two", ""])

        assert [r.chunk for r in results] == ["one", "two", ""]
        assert [r.text for r in results] == [
            "completion for: one",
            "completion for: two",
            "completion for: Expand",
        ]
        assert mock_openai_client.chat.completions.create.await_count == 3
