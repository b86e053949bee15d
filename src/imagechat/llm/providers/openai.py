"""OpenAI-compatible chat-completion provider.

Image generation gateways that speak the chat-completion protocol return
the generated image embedded in the reply text as a markdown data URL.
"""

import asyncio
import re
from typing import Any

import openai
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion

from ...config import DEFAULT_MODEL, DEFAULT_REQUEST_TIMEOUT_SECONDS, OPENAI_MAX_TOKENS
from ...errors import CapabilityError, RequestTimeoutError, TransportError
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

API_PATH = "/v1"

# ![alt](data:image/<type>;base64,<payload>)
MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[.*?\]\(data:image/[^;]+;base64,([^)]+)\)")


def _role_to_openai(role: str) -> str:
    return "assistant" if role == "model" else "user"


def _data_url(image: InlineData) -> str:
    return f"data:{image.mime_type};base64,{image.data}"


def history_to_messages(history: list[HistoryEntry]) -> list[dict[str, Any]]:
    """Flatten canonical history into chat-completion messages.

    User turns with images become mixed text/image_url content lists;
    everything else collapses to a single newline-joined text content.
    """
    messages = []
    for entry in history:
        texts = [part.text for part in entry.parts if part.text and not part.thought]
        images = [
            _data_url(part.inline_data)
            for part in entry.parts
            if part.inline_data is not None and not part.thought and part.inline_data.data
        ]
        role = _role_to_openai(entry.role)

        if images and entry.role == "user":
            content: list[dict[str, Any]] = []
            if texts:
                content.append({"type": "text", "text": "\n".join(texts)})
            content.extend({"type": "image_url", "image_url": {"url": url}} for url in images)
            messages.append({"role": role, "content": content})
        else:
            messages.append({"role": role, "content": "\n".join(texts)})
    return messages


def build_user_message(prompt: str, images: list[InlineData]) -> dict[str, Any]:
    """Build the outgoing user message for a prompt and optional images."""
    images = [image for image in images if image.data]
    if not images:
        return {"role": "user", "content": prompt}

    content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
    content.extend({"type": "image_url", "image_url": {"url": _data_url(image)}} for image in images)
    return {"role": "user", "content": content}


def extract_image_from_markdown(text: str) -> tuple[str, str | None]:
    """Pull an embedded base64 image out of reply text.

    Only the last embedded image is kept; every match is removed from the
    returned text.

    Returns:
        Tuple of (clean text, base64 image or None)
    """
    matches = MARKDOWN_IMAGE_PATTERN.findall(text)
    image_data = matches[-1] if matches else None
    clean_text = MARKDOWN_IMAGE_PATTERN.sub("", text).strip()
    return clean_text, image_data


def completion_to_result(
    completion: ChatCompletion,
    previous_history: list[HistoryEntry],
    outgoing: HistoryEntry,
) -> GenerationResult:
    """Decode a chat completion into the common result shape.

    The model turn is synthesized in the native history format so history
    is stored uniformly whichever provider served the request.
    """
    choice = completion.choices[0] if completion.choices else None
    if choice is None:
        return GenerationResult(history=[*previous_history, outgoing])

    content = choice.message.content or ""
    reasoning = getattr(choice.message, "reasoning_content", None) or ""
    clean_text, image_data = extract_image_from_markdown(content)

    parts = []
    if reasoning:
        parts.append(TextPart(text=reasoning, thought=True))
    if clean_text:
        parts.append(TextPart(text=clean_text))

    model_parts = []
    if clean_text:
        model_parts.append(ContentPart.of_text(clean_text))
    if image_data:
        model_parts.append(ContentPart.of_image(image_data))
    if not model_parts:
        model_parts.append(ContentPart.of_text(""))

    return GenerationResult(
        text=clean_text,
        parts=parts,
        image_data=image_data,
        history=[*previous_history, outgoing, HistoryEntry(role="model", parts=model_parts)],
    )


def _status_message(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    if isinstance(body, str) and body.strip():
        return body
    return "Request failed"


class OpenAICompatProvider(ImageProvider):
    """Chat-completion compatible provider.

    Hidden design decisions:
    - OpenAI SDK client initialization against a gateway base URL
    - Flattening multi-modal history into chat messages
    - Recovering generated images from markdown data URLs
    - Synthesizing native-format history entries

    Edit and search are not offered by this protocol.
    """

    supports_edit = False
    supports_search = False

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str = DEFAULT_MODEL,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        max_tokens: int = OPENAI_MAX_TOKENS,
        **client_kwargs: Any
    ):
        """Initialize the chat-completion provider.

        Args:
            api_key: API key sent as a bearer token
            base_url: API base URL without the /v1 suffix
            model: Model name placed in the request body
            request_timeout: Seconds before a call is cancelled
            max_tokens: Completion token budget
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._model = model
        self._timeout = request_timeout
        self._max_tokens = max_tokens
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=f"{base_url.rstrip('/')}{API_PATH}" if base_url else None,
            timeout=request_timeout,
            max_retries=0,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        """Get the model name."""
        return self._model

    async def _request(self, messages: list[dict[str, Any]]) -> ChatCompletion:
        try:
            return await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    max_tokens=self._max_tokens,
                    stream=False,
                ),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            raise RequestTimeoutError(self._timeout) from e
        except openai.APITimeoutError as e:
            raise RequestTimeoutError(self._timeout, details=str(e)) from e
        except openai.APIStatusError as e:
            raise TransportError(
                _status_message(e), status=e.status_code, code=e.code, details=e.body
            ) from e
        except openai.APIConnectionError as e:
            raise TransportError("Network request failed", details=str(e)) from e
        except openai.APIError as e:
            raise TransportError(e.message or "Malformed response body", details=e.body) from e
        except ValueError as e:
            raise TransportError("Malformed response body", details=str(e)) from e
        except Exception as e:
            raise TransportError(f"Request failed: {type(e).__name__}", details=str(e)) from e

    async def _call(self, request: GenerationRequest) -> GenerationResult:
        messages = [
            *history_to_messages(request.history),
            build_user_message(request.prompt, request.images),
        ]
        completion = await self._request(messages)
        return completion_to_result(
            completion,
            request.history,
            user_entry(request.prompt, request.images),
        )

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        return await self._call(request.model_copy(update={"images": []}))

    async def edit_image(self, request: GenerationRequest) -> GenerationResult:
        raise CapabilityError("Image editing is not supported in OpenAI-compatible mode")

    async def composite_images(self, request: GenerationRequest) -> GenerationResult:
        return await self._call(request)

    async def generate_with_search(self, request: GenerationRequest) -> GenerationResult:
        raise CapabilityError("Search is not supported in OpenAI-compatible mode")

    async def close(self) -> None:
        """Close the OpenAI client.

        Note: Uses the OpenAI SDK's async context manager for proper cleanup.
        See: https://github.com/openai/openai-python#async-usage
        """
        await self._client.close()
