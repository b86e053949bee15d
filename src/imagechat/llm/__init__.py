from .base import ImageProvider
from .factory import create_image_provider, provider_class, provider_from_settings
from .models import (
    AspectRatio,
    ContentPart,
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
    HistoryEntry,
    ImageSize,
    InlineData,
    TextPart,
)
from .providers import GeminiProvider, OpenAICompatProvider

__all__ = [
    "ImageProvider",
    "create_image_provider",
    "provider_class",
    "provider_from_settings",
    "AspectRatio",
    "ContentPart",
    "GenerationOptions",
    "GenerationRequest",
    "GenerationResult",
    "HistoryEntry",
    "ImageSize",
    "InlineData",
    "TextPart",
    "GeminiProvider",
    "OpenAICompatProvider",
]
