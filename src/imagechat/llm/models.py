"""Canonical provider-agnostic request, result and history shapes.

Provider history is stored in this one representation regardless of which
adapter served a request. Each adapter encodes it to its own wire format
at call time and decodes the reply back into it.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_IMAGE_MIME_TYPE = "image/png"


class AspectRatio(str, Enum):
    """Output image aspect ratio."""

    SQUARE = "1:1"
    WIDE = "16:9"
    LANDSCAPE = "4:3"
    PORTRAIT = "3:4"
    TALL = "9:16"
    CLASSIC = "5:4"


class ImageSize(str, Enum):
    """Output image resolution class."""

    ONE_K = "1K"
    TWO_K = "2K"
    FOUR_K = "4K"


class InlineData(BaseModel):
    """Image payload carried inline as base64 text."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = Field(default=DEFAULT_IMAGE_MIME_TYPE)
    data: str = Field(description="Base64-encoded image bytes")


class ContentPart(BaseModel):
    """One segment of a history entry: text, inline image or reasoning marker."""

    model_config = ConfigDict(frozen=True)

    text: str | None = None
    inline_data: InlineData | None = None
    thought: bool = Field(default=False, description="Reasoning segment, display-only")

    @classmethod
    def of_text(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @classmethod
    def of_image(cls, data: str, mime_type: str = DEFAULT_IMAGE_MIME_TYPE) -> "ContentPart":
        return cls(inline_data=InlineData(mime_type=mime_type, data=data))


class HistoryEntry(BaseModel):
    """One turn of the model's conversation memory."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "model"]
    parts: list[ContentPart] = Field(default_factory=list)


class TextPart(BaseModel):
    """Structured text segment of an assistant reply (answer or reasoning)."""

    model_config = ConfigDict(frozen=True)

    text: str
    thought: bool = False


class GenerationOptions(BaseModel):
    """Image generation settings forwarded to the provider."""

    model_config = ConfigDict(frozen=True)

    aspect_ratio: AspectRatio = AspectRatio.SQUARE
    image_size: ImageSize = ImageSize.TWO_K


# Options sent when the active provider cannot interpret image settings
SAFE_GENERATION_OPTIONS = GenerationOptions(
    aspect_ratio=AspectRatio.SQUARE,
    image_size=ImageSize.ONE_K,
)


class GenerationRequest(BaseModel):
    """Provider-agnostic call request."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    images: list[InlineData] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class GenerationResult(BaseModel):
    """Common result shape returned by every provider."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(default="", description="Display text of the reply")
    parts: list[TextPart] = Field(default_factory=list)
    image_data: str | None = Field(default=None, description="Base64 of the generated image")
    grounding_metadata: dict[str, Any] | None = None
    history: list[HistoryEntry] = Field(
        default_factory=list,
        description="Updated history including this exchange"
    )


def user_entry(prompt: str, images: list[InlineData]) -> HistoryEntry:
    """Build the canonical user turn for an outgoing request."""
    parts = [ContentPart.of_text(prompt)]
    parts.extend(
        ContentPart(inline_data=image) for image in images if image.data
    )
    return HistoryEntry(role="user", parts=parts)


def without_thoughts(history: list[HistoryEntry]) -> list[HistoryEntry]:
    """Drop reasoning segments, keeping every entry non-empty."""
    cleaned = []
    for entry in history:
        if not any(part.thought for part in entry.parts):
            cleaned.append(entry)
            continue
        parts = [part for part in entry.parts if not part.thought]
        cleaned.append(HistoryEntry(role=entry.role, parts=parts or [ContentPart.of_text("")]))
    return cleaned
