from typing import Any

from ..config import ApiSettings, ApiType
from .base import ImageProvider
from .providers import GeminiProvider, OpenAICompatProvider

_PROVIDERS: dict[ApiType, type[ImageProvider]] = {
    ApiType.GEMINI: GeminiProvider,
    ApiType.OPENAI: OpenAICompatProvider,
}


def provider_class(api_type: ApiType | str) -> type[ImageProvider]:
    """Return the provider class serving an API type without instantiating it.

    Raises:
        ValueError: If the API type is not supported
    """
    try:
        return _PROVIDERS[ApiType(api_type)]
    except ValueError:
        raise ValueError(
            f"Unsupported provider: {api_type}. "
            f"Supported providers: 'gemini', 'openai'"
        ) from None


def create_image_provider(provider: str, **config: Any) -> ImageProvider:
    """Create an image provider instance.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('gemini', 'openai')
        **config: Provider-specific configuration
            For both:
                - api_key: str (required)
                - base_url: str | None
                - model: str (default: 'gemini-3-pro-image-preview')
                - request_timeout: float (default: 1200)
            For OpenAI-compatible:
                - max_tokens: int (default: 4096)

    Returns:
        Initialized image provider instance

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> provider = create_image_provider(
        ...     "gemini",
        ...     api_key="...",
        ...     base_url="https://generativelanguage.googleapis.com",
        ... )
    """
    cls = provider_class(provider.lower())
    if "api_key" not in config:
        raise TypeError(f"{cls.__name__} requires 'api_key' in config")
    return cls(**config)


def provider_from_settings(settings: ApiSettings) -> ImageProvider:
    """Create the provider described by the current API settings."""
    return create_image_provider(
        settings.api_type.value,
        api_key=settings.api_key,
        base_url=settings.base_url or None,
        model=settings.model,
        request_timeout=settings.request_timeout,
    )
