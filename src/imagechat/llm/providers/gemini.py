"""Google Gemini native protocol provider.

Uses the official Google GenAI SDK for async generateContent calls.
Reference: https://github.com/googleapis/python-genai

Note: Model turns are replayed without their images and reasoning parts;
the server attaches signatures to those that it cannot re-validate when
they come back from a different request.
"""

import asyncio
import base64
import binascii
from typing import Any

import httpx
from google import genai
from google.genai import errors, types

from ...config import DEFAULT_MODEL, DEFAULT_REQUEST_TIMEOUT_SECONDS
from ...errors import RequestTimeoutError, TransportError
from ..base import ImageProvider
from ..models import (
    ContentPart,
    GenerationRequest,
    GenerationResult,
    HistoryEntry,
    InlineData,
    TextPart,
    user_entry,
)

API_VERSION = "v1beta"
RESPONSE_MODALITIES = ["TEXT", "IMAGE"]


def _decode_base64(data: str) -> bytes | None:
    try:
        return base64.b64decode(data)
    except (binascii.Error, ValueError):
        return None


def history_to_contents(history: list[HistoryEntry]) -> list[types.Content]:
    """Encode canonical history into Gemini contents.

    Reasoning parts are dropped everywhere, image parts are dropped from
    model turns, and turns left without parts are omitted.
    """
    contents = []
    for entry in history:
        parts = []
        for part in entry.parts:
            if part.thought:
                continue
            if part.inline_data is not None:
                if entry.role == "model":
                    continue
                raw = _decode_base64(part.inline_data.data)
                if raw is None:
                    continue
                parts.append(types.Part(
                    inline_data=types.Blob(mime_type=part.inline_data.mime_type, data=raw)
                ))
            elif part.text:
                parts.append(types.Part(text=part.text))
        if parts:
            contents.append(types.Content(role=entry.role, parts=parts))
    return contents


def decode_response(
    response: types.GenerateContentResponse,
) -> tuple[list[ContentPart], list[TextPart], str | None, dict[str, Any] | None]:
    """Decode a generateContent reply.

    Returns:
        Tuple of (history parts for the model turn, display text parts,
        first generated image as base64, grounding metadata)
    """
    history_parts: list[ContentPart] = []
    text_parts: list[TextPart] = []
    image_data = None
    grounding = None

    candidate = response.candidates[0] if response.candidates else None
    if candidate is None:
        return history_parts, text_parts, image_data, grounding

    if candidate.grounding_metadata is not None:
        grounding = candidate.grounding_metadata.model_dump(mode="json", exclude_none=True)

    candidate_parts = candidate.content.parts if candidate.content and candidate.content.parts else []
    for part in candidate_parts:
        if part.thought:
            # Reasoning is shown to the user but never remembered
            if part.text:
                text_parts.append(TextPart(text=part.text, thought=True))
            continue

        if part.text:
            history_parts.append(ContentPart.of_text(part.text))
            text_parts.append(TextPart(text=part.text))
            continue

        if part.inline_data is not None and part.inline_data.data:
            encoded = base64.b64encode(part.inline_data.data).decode("ascii")
            mime_type = part.inline_data.mime_type or "image/png"
            history_parts.append(ContentPart(inline_data=InlineData(mime_type=mime_type, data=encoded)))
            if image_data is None:
                image_data = encoded

    return history_parts, text_parts, image_data, grounding


def _to_transport_error(exc: errors.APIError) -> TransportError:
    message = exc.message or "Request failed"
    return TransportError(message, status=exc.code, code=exc.status, details=exc.details)


class GeminiProvider(ImageProvider):
    """Google Gemini native multi-modal provider.

    Hidden design decisions:
    - Google GenAI client initialization against a custom base URL
    - Content list encoding with per-role part filtering
    - Image generation config (modalities, aspect ratio, size)
    - Search grounding via the google_search tool
    """

    supports_edit = True
    supports_search = True

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str = DEFAULT_MODEL,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        **client_kwargs: Any
    ):
        """Initialize Gemini provider.

        Args:
            api_key: API key sent as x-goog-api-key
            base_url: API base URL (None uses Google's endpoint)
            model: Image model name
            request_timeout: Seconds before a call is cancelled
            **client_kwargs: Additional kwargs for Client
        """
        self._model = model
        self._timeout = request_timeout
        http_options = types.HttpOptions(
            base_url=base_url.rstrip("/") if base_url else None,
            api_version=API_VERSION,
            timeout=int(request_timeout * 1000),
        )
        self._client = genai.Client(api_key=api_key, http_options=http_options, **client_kwargs)

    @property
    def model(self) -> str:
        """Get the model name."""
        return self._model

    def _build_config(self, request: GenerationRequest, use_search: bool) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            response_modalities=RESPONSE_MODALITIES,
            image_config=types.ImageConfig(
                aspect_ratio=request.options.aspect_ratio.value,
                image_size=request.options.image_size.value,
            ),
        )
        if use_search:
            config.tools = [types.Tool(google_search=types.GoogleSearch())]
        return config

    async def _request(
        self,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
    ) -> types.GenerateContentResponse:
        try:
            return await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._model,
                    contents=contents,
                    config=config,
                ),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            raise RequestTimeoutError(self._timeout) from e
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(self._timeout, details=str(e)) from e
        except errors.APIError as e:
            raise _to_transport_error(e) from e
        except httpx.HTTPError as e:
            raise TransportError("Network request failed", details=str(e)) from e
        except ValueError as e:
            raise TransportError("Malformed response body", details=str(e)) from e
        except Exception as e:
            raise TransportError(f"Request failed: {type(e).__name__}", details=str(e)) from e

    async def _call(self, request: GenerationRequest, use_search: bool = False) -> GenerationResult:
        outgoing = user_entry(request.prompt, request.images)
        contents = history_to_contents([*request.history, outgoing])
        config = self._build_config(request, use_search)

        response = await self._request(contents, config)
        history_parts, text_parts, image_data, grounding = decode_response(response)

        history = [*request.history, outgoing]
        if history_parts:
            history.append(HistoryEntry(role="model", parts=history_parts))

        return GenerationResult(
            text="\n\n".join(part.text for part in text_parts if not part.thought),
            parts=text_parts,
            image_data=image_data,
            grounding_metadata=grounding,
            history=history,
        )

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        return await self._call(request.model_copy(update={"images": []}))

    async def edit_image(self, request: GenerationRequest) -> GenerationResult:
        return await self._call(request)

    async def composite_images(self, request: GenerationRequest) -> GenerationResult:
        return await self._call(request)

    async def generate_with_search(self, request: GenerationRequest) -> GenerationResult:
        return await self._call(request.model_copy(update={"images": []}), use_search=True)

    async def close(self) -> None:
        """Close the Gemini client.

        Note: The Google GenAI client doesn't require explicit closing,
        but we implement this for interface consistency.
        """
        pass
