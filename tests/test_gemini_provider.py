"""Unit tests for the Gemini native provider."""
import asyncio
import base64
from unittest.mock import AsyncMock, patch

import pytest
from google.genai import errors, types

from imagechat.errors import RequestTimeoutError, TransportError
from imagechat.llm.models import (
    AspectRatio,
    ContentPart,
    GenerationOptions,
    GenerationRequest,
    HistoryEntry,
    ImageSize,
    InlineData,
)
from imagechat.llm.providers.gemini import GeminiProvider, decode_response, history_to_contents

PNG_BYTES = b"\x89PNG-fake"
PNG_BASE64 = base64.b64encode(PNG_BYTES).decode("ascii")


def _response(*parts: types.Part, grounding: types.GroundingMetadata | None = None):
    return types.GenerateContentResponse(candidates=[
        types.Candidate(
            content=types.Content(role="model", parts=list(parts)),
            grounding_metadata=grounding,
        )
    ])


@pytest.fixture
def provider():
    return GeminiProvider(api_key="test-key", base_url="https://gateway.example.test/")


def _mock_generate(provider, **kwargs):
    return patch.object(provider._client.aio.models, "generate_content", new=AsyncMock(**kwargs))


class TestHistoryToContents:
    """Tests for canonical history encoding."""

    def test_filters_model_images_and_reasoning(self):
        history = [
            HistoryEntry(role="user", parts=[ContentPart.of_text("a cat"), ContentPart.of_image(PNG_BASE64)]),
            HistoryEntry(role="model", parts=[
                ContentPart(text="thinking", thought=True),
                ContentPart.of_text("done"),
                ContentPart.of_image(PNG_BASE64),
            ]),
        ]
        contents = history_to_contents(history)

        assert [c.role for c in contents] == ["user", "model"]
        assert contents[0].parts[0].text == "a cat"
        assert contents[0].parts[1].inline_data.data == PNG_BYTES
        assert len(contents[1].parts) == 1
        assert contents[1].parts[0].text == "done"

    def test_drops_entries_left_empty(self):
        history = [
            HistoryEntry(role="model", parts=[ContentPart.of_image(PNG_BASE64)]),
            HistoryEntry(role="model", parts=[ContentPart(text="hmm", thought=True)]),
            HistoryEntry(role="user", parts=[ContentPart.of_text("")]),
        ]
        assert history_to_contents(history) == []


class TestDecodeResponse:
    """Tests for response decoding."""

    def test_text_image_and_reasoning(self):
        response = _response(
            types.Part(text="planning", thought=True),
            types.Part(text="Here it is"),
            types.Part(inline_data=types.Blob(mime_type="image/png", data=PNG_BYTES)),
            types.Part(inline_data=types.Blob(mime_type="image/png", data=b"second")),
        )
        history_parts, text_parts, image_data, grounding = decode_response(response)

        assert image_data == PNG_BASE64
        assert [(p.text, p.thought) for p in text_parts] == [("planning", True), ("Here it is", False)]
        assert not any(p.thought for p in history_parts)
        assert len(history_parts) == 3
        assert grounding is None

    def test_no_candidates(self):
        assert decode_response(types.GenerateContentResponse(candidates=[])) == ([], [], None, None)


class TestGeminiProvider:
    """Tests for GeminiProvider calls."""

    def test_capabilities(self):
        assert GeminiProvider.supports_edit is True
        assert GeminiProvider.supports_search is True

    @pytest.mark.asyncio
    async def test_generate_image(self, provider):
        response = _response(
            types.Part(text="thinking", thought=True),
            types.Part(text="A cat"),
            types.Part(inline_data=types.Blob(mime_type="image/png", data=PNG_BYTES)),
        )
        request = GenerationRequest(
            prompt="a cat",
            images=[InlineData(data="aWdub3JlZA==")],
            options=GenerationOptions(aspect_ratio=AspectRatio.WIDE, image_size=ImageSize.FOUR_K),
        )
        with _mock_generate(provider, return_value=response) as mock:
            result = await provider.generate_image(request)

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == provider.model
        assert len(kwargs["contents"]) == 1
        assert len(kwargs["contents"][0].parts) == 1
        assert kwargs["config"].response_modalities == ["TEXT", "IMAGE"]
        assert kwargs["config"].image_config.aspect_ratio == "16:9"
        assert kwargs["config"].image_config.image_size == "4K"
        assert not kwargs["config"].tools

        assert result.text == "A cat"
        assert result.image_data == PNG_BASE64
        assert len(result.parts) == 2
        assert [entry.role for entry in result.history] == ["user", "model"]
        assert result.history[0].parts == [ContentPart.of_text("a cat")]

    @pytest.mark.asyncio
    async def test_search_sets_tool_and_grounding(self, provider):
        grounding = types.GroundingMetadata(web_search_queries=["eiffel tower height"])
        response = _response(types.Part(text="330 m"), grounding=grounding)

        with _mock_generate(provider, return_value=response) as mock:
            result = await provider.generate_with_search(GenerationRequest(prompt="eiffel"))

        tools = mock.call_args.kwargs["config"].tools
        assert tools and tools[0].google_search is not None
        assert result.grounding_metadata == {"web_search_queries": ["eiffel tower height"]}
        assert result.image_data is None

    @pytest.mark.asyncio
    async def test_edit_sends_image(self, provider):
        history = [
            HistoryEntry(role="user", parts=[ContentPart.of_text("a cat")]),
            HistoryEntry(role="model", parts=[ContentPart.of_image(PNG_BASE64)]),
        ]
        request = GenerationRequest(prompt="make it blue", images=[InlineData(data=PNG_BASE64)], history=history)

        with _mock_generate(provider, return_value=_response(types.Part(text="ok"))) as mock:
            result = await provider.edit_image(request)

        contents = mock.call_args.kwargs["contents"]
        # The model turn held only an image and is omitted
        assert [c.role for c in contents] == ["user", "user"]
        assert contents[-1].parts[1].inline_data.data == PNG_BYTES
        assert len(result.history) == 4

    @pytest.mark.asyncio
    async def test_empty_reply_keeps_user_turn(self, provider):
        with _mock_generate(provider, return_value=types.GenerateContentResponse(candidates=[])):
            result = await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert result.text == ""
        assert result.image_data is None
        assert [entry.role for entry in result.history] == ["user"]

    @pytest.mark.asyncio
    async def test_api_error_becomes_transport_error(self, provider):
        error = errors.APIError(429, {"error": {
            "code": 429,
            "message": "Resource exhausted",
            "status": "RESOURCE_EXHAUSTED",
        }})
        with _mock_generate(provider, side_effect=error):
            with pytest.raises(TransportError) as exc_info:
                await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert exc_info.value.status == 429
        assert str(exc_info.value) == "Resource exhausted (HTTP 429)"

    @pytest.mark.asyncio
    async def test_other_client_error_becomes_transport_error(self, provider):
        class ClientConnectorError(Exception):
            pass

        with _mock_generate(provider, side_effect=ClientConnectorError("connection reset")):
            with pytest.raises(TransportError) as exc_info:
                await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert exc_info.value.message == "Request failed: ClientConnectorError"
        assert exc_info.value.details == "connection reset"
        assert isinstance(exc_info.value.__cause__, ClientConnectorError)

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = GeminiProvider(api_key="test-key", request_timeout=0.05)

        async def slow(**kwargs):
            await asyncio.sleep(5)

        with _mock_generate(provider, side_effect=slow):
            with pytest.raises(RequestTimeoutError) as exc_info:
                await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert exc_info.value.timeout == 0.05
        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_context_manager(self, provider):
        async with provider as p:
            assert p is provider

    @pytest.mark.asyncio
    async def test_closed_loop_on_exit_keeps_result(self, provider):
        with patch.object(provider, "close", new=AsyncMock(side_effect=RuntimeError("Event loop is closed"))):
            async with provider:
                pass

    @pytest.mark.asyncio
    async def test_other_close_errors_propagate(self, provider):
        with patch.object(provider, "close", new=AsyncMock(side_effect=RuntimeError("client already closed"))):
            with pytest.raises(RuntimeError, match="already closed"):
                async with provider:
                    pass
