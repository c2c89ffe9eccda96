"""
Unit tests for SDK layer.

Tests the provider adapters' request mapping and response normalization,
and the environment-driven client factory. Provider SDK clients are mocked.
"""

import asyncio
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest

from genstudio.core.errors import AuthenticationError
from genstudio.sdk.base import ContentPart, GenerationSettings, InlineData
from genstudio.sdk.factory import create_client_factory
from genstudio.sdk.gemini_client import GeminiClient, build_generate_config
from genstudio.sdk.openai_client import (
    GEMINI_OPENAI_BASE_URL,
    OpenAICompatibleClient,
    build_messages,
)

PNG_B64 = base64.b64encode(b"\x89PNG fake").decode("ascii")

PARTS = [
    ContentPart(inline_data=InlineData(mime_type="image/png", data=PNG_B64)),
    ContentPart(text="describe this"),
]


async def _aiter(items):
    for item in items:
        yield item


def _collect(stream):
    async def collect():
        return [chunk async for chunk in stream]

    return asyncio.run(collect())


def _text_chunk(*texts, thought=None):
    return SimpleNamespace(candidates=[SimpleNamespace(
        content=SimpleNamespace(parts=[
            SimpleNamespace(text=text, thought=thought, inline_data=None) for text in texts
        ]),
        finish_reason=None,
        grounding_metadata=None,
    )])


class TestContentPart:
    def test_requires_exactly_one_field(self):
        with pytest.raises(ValueError):
            ContentPart()
        with pytest.raises(ValueError):
            ContentPart(text="a", inline_data=InlineData(mime_type="image/png", data="AA=="))


class TestGeminiClient:
    """Test the Google Gen AI adapter."""

    def test_init_missing_key(self):
        with pytest.raises(ValueError, match="api_key is required"):
            GeminiClient(api_key="  ")

    @patch("genstudio.sdk.gemini_client.genai.Client")
    def test_text_and_grounding(self, mock_client_class):
        response = SimpleNamespace(candidates=[SimpleNamespace(
            content=SimpleNamespace(parts=[
                SimpleNamespace(text="thinking...", thought=True, inline_data=None),
                SimpleNamespace(text="Hello ", thought=None, inline_data=None),
                SimpleNamespace(text="world", thought=None, inline_data=None),
            ]),
            finish_reason=SimpleNamespace(name="STOP"),
            grounding_metadata=SimpleNamespace(grounding_chunks=[
                SimpleNamespace(web=SimpleNamespace(uri="https://a.example", title="A")),
                SimpleNamespace(web=None),
            ]),
        )])
        mock_instance = Mock()
        mock_instance.aio.models.generate_content = AsyncMock(return_value=response)
        mock_client_class.return_value = mock_instance

        client = GeminiClient(api_key="test-key")
        result = asyncio.run(client.generate_content("gemini-3-flash-preview", PARTS, GenerationSettings()))

        mock_client_class.assert_called_once_with(api_key="test-key")
        candidate = result.candidates[0]
        assert candidate.text == "Hello world"
        assert candidate.finish_reason == "STOP"
        assert [chunk.uri for chunk in candidate.grounding_chunks] == ["https://a.example"]

        kwargs = mock_instance.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-3-flash-preview"
        sent_parts = kwargs["contents"].parts
        assert sent_parts[0].inline_data.data == b"\x89PNG fake"
        assert sent_parts[1].text == "describe this"

    @patch("genstudio.sdk.gemini_client.genai.Client")
    def test_image_output_encoded(self, mock_client_class):
        response = SimpleNamespace(candidates=[SimpleNamespace(
            content=SimpleNamespace(parts=[
                SimpleNamespace(text=None, thought=None,
                                inline_data=SimpleNamespace(data=b"img", mime_type="image/png")),
            ]),
            finish_reason=SimpleNamespace(name="STOP"),
            grounding_metadata=None,
        )])
        mock_instance = Mock()
        mock_instance.aio.models.generate_content = AsyncMock(return_value=response)
        mock_client_class.return_value = mock_instance

        client = GeminiClient(api_key="test-key")
        result = asyncio.run(client.generate_content("gemini-2.5-flash-image", PARTS, GenerationSettings()))

        candidate = result.candidates[0]
        assert candidate.text is None
        assert candidate.inline_data.data == base64.b64encode(b"img").decode("ascii")

    @patch("genstudio.sdk.gemini_client.genai.Client")
    def test_no_candidates(self, mock_client_class):
        mock_instance = Mock()
        mock_instance.aio.models.generate_content = AsyncMock(return_value=SimpleNamespace(candidates=None))
        mock_client_class.return_value = mock_instance

        client = GeminiClient(api_key="test-key")
        result = asyncio.run(client.generate_content("gemini-3-flash-preview", PARTS, GenerationSettings()))

        assert result.candidates == []

    @patch("genstudio.sdk.gemini_client.genai.Client")
    def test_provider_errors_propagate(self, mock_client_class):
        mock_instance = Mock()
        mock_instance.aio.models.generate_content = AsyncMock(side_effect=RuntimeError("boom"))
        mock_client_class.return_value = mock_instance

        client = GeminiClient(api_key="test-key")
        with pytest.raises(RuntimeError, match="boom"):
            asyncio.run(client.generate_content("gemini-3-flash-preview", PARTS, GenerationSettings()))


    @patch("genstudio.sdk.gemini_client.genai.Client")
    def test_stream_yields_answer_text(self, mock_client_class):
        mock_instance = Mock()
        mock_instance.aio.models.generate_content_stream = AsyncMock(return_value=_aiter([
            _text_chunk("planning", thought=True),
            SimpleNamespace(candidates=None),
            _text_chunk("Hel"),
            _text_chunk("lo ", "there"),
        ]))
        mock_client_class.return_value = mock_instance

        client = GeminiClient(api_key="test-key")
        chunks = _collect(client.generate_content_stream("gemini-3-flash-preview", PARTS, GenerationSettings()))

        assert chunks == ["Hel", "lo there"]
        kwargs = mock_instance.aio.models.generate_content_stream.call_args.kwargs
        assert kwargs["model"] == "gemini-3-flash-preview"
        assert kwargs["contents"].parts[1].text == "describe this"


class TestBuildGenerateConfig:
    """Test GenerationSettings -> GenerateContentConfig mapping."""

    def test_plain_settings(self):
        config = build_generate_config(GenerationSettings(temperature=0.7, max_output_tokens=256))

        assert config.temperature == 0.7
        assert config.max_output_tokens == 256
        assert config.thinking_config is None
        assert config.tools is None
        assert config.image_config is None

    def test_thinking_search_and_image(self):
        config = build_generate_config(GenerationSettings(
            thinking_budget=1024,
            use_search=True,
            aspect_ratio="16:9",
            image_size="2K",
        ))

        assert config.thinking_config.thinking_budget == 1024
        assert config.tools[0].google_search is not None
        assert config.image_config.aspect_ratio == "16:9"
        assert config.image_config.image_size == "2K"


class TestOpenAICompatibleClient:
    """Test the Chat Completions adapter."""

    def test_init_missing_key(self):
        with pytest.raises(ValueError, match="api_key is required"):
            OpenAICompatibleClient(api_key="")

    @patch("genstudio.sdk.openai_client.AsyncOpenAI")
    def test_default_base_url(self, mock_openai_class):
        client = OpenAICompatibleClient(api_key="test-key")

        assert client.base_url == GEMINI_OPENAI_BASE_URL
        assert mock_openai_class.call_args.kwargs["base_url"] == GEMINI_OPENAI_BASE_URL

    @patch("genstudio.sdk.openai_client.AsyncOpenAI")
    def test_generate_content(self, mock_openai_class):
        completion = SimpleNamespace(choices=[
            SimpleNamespace(message=SimpleNamespace(content="a caption"), finish_reason="stop"),
        ])
        mock_instance = Mock()
        mock_instance.chat.completions.create = AsyncMock(return_value=completion)
        mock_openai_class.return_value = mock_instance

        client = OpenAICompatibleClient(api_key="test-key", base_url="https://llm.local/v1")
        settings = GenerationSettings(temperature=0.2, max_output_tokens=64, response_mime_type="application/json")
        result = asyncio.run(client.generate_content("gemini-3-flash-preview", PARTS, settings))

        assert result.candidates[0].text == "a caption"
        assert result.candidates[0].finish_reason == "stop"
        kwargs = mock_instance.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gemini-3-flash-preview"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 64
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "top_p" not in kwargs

    @patch("genstudio.sdk.openai_client.AsyncOpenAI")
    def test_stream(self, mock_openai_class):
        def delta(content):
            return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])

        mock_instance = Mock()
        mock_instance.chat.completions.create = AsyncMock(return_value=_aiter([
            delta("a "),
            SimpleNamespace(choices=[]),
            delta(None),
            delta("caption"),
        ]))
        mock_openai_class.return_value = mock_instance

        client = OpenAICompatibleClient(api_key="test-key")
        chunks = _collect(client.generate_content_stream(
            "gemini-3-flash-preview", PARTS, GenerationSettings(temperature=0.2)
        ))

        assert chunks == ["a ", "caption"]
        kwargs = mock_instance.chat.completions.create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["temperature"] == 0.2

    def test_build_messages(self):
        messages = build_messages(PARTS, system_instruction="be brief")

        assert messages[0] == {"role": "system", "content": "be brief"}
        content = messages[1]["content"]
        assert content[0]["image_url"]["url"] == f"data:image/png;base64,{PNG_B64}"
        assert content[1] == {"type": "text", "text": "describe this"}


class TestClientFactory:
    """Test environment-driven client construction."""

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            create_client_factory("anthropic")

    def test_missing_key(self, monkeypatch):
        for variable in ("API_KEY", "GEMINI_API_KEY"):
            monkeypatch.delenv(variable, raising=False)

        factory = create_client_factory("gemini")

        with pytest.raises(AuthenticationError, match="API_KEY_MISSING"):
            factory()

    @patch("genstudio.sdk.gemini_client.genai.Client")
    def test_key_read_on_every_call(self, mock_client_class, monkeypatch):
        monkeypatch.delenv("API_KEY", raising=False)
        monkeypatch.setenv("GEMINI_API_KEY", "first")
        factory = create_client_factory("gemini")

        factory()
        monkeypatch.setenv("GEMINI_API_KEY", "second")
        factory()

        keys = [call.kwargs["api_key"] for call in mock_client_class.call_args_list]
        assert keys == ["first", "second"]

    @patch("genstudio.sdk.openai_client.AsyncOpenAI")
    def test_openai_provider_from_env(self, mock_openai_class, monkeypatch):
        monkeypatch.setenv("GENSTUDIO_PROVIDER", "openai")
        monkeypatch.setenv("GENSTUDIO_BASE_URL", "https://llm.local/v1")
        monkeypatch.setenv("API_KEY", "shared-key")

        client = create_client_factory()()

        assert isinstance(client, OpenAICompatibleClient)
        assert client.base_url == "https://llm.local/v1"
