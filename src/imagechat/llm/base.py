from abc import ABC, abstractmethod
from typing import Any, ClassVar

from .models import GenerationRequest, GenerationResult


class ImageProvider(ABC):
    """Abstract base class for image conversation providers.

    This module hides the design decision of which wire protocol is spoken.
    Implementations must handle provider-specific details like:
    - API client setup and authentication
    - Encoding canonical history into the wire format
    - Decoding replies back into a GenerationResult
    - Normalizing failures into the imagechat error taxonomy

    Supports async context manager protocol for proper resource cleanup:
        async with provider:
            result = await provider.generate_image(request)
        # Automatically cleaned up
    """

    supports_edit: ClassVar[bool] = True
    supports_search: ClassVar[bool] = True

    @abstractmethod
    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        """Generate from a text prompt and the conversation history.

        Raises:
            TransportError: Network, HTTP or payload failures
            RequestTimeoutError: The call exceeded its deadline
        """

    @abstractmethod
    async def edit_image(self, request: GenerationRequest) -> GenerationResult:
        """Edit the image carried in ``request.images`` according to the prompt."""

    @abstractmethod
    async def composite_images(self, request: GenerationRequest) -> GenerationResult:
        """Generate from the prompt and several reference images."""

    @abstractmethod
    async def generate_with_search(self, request: GenerationRequest) -> GenerationResult:
        """Generate with web search grounding enabled."""

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    async def __aenter__(self) -> "ImageProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the SDK client once the request is done.

        A provider is built per send, so the client is closed while the
        generation result is already in hand. If the CLI's event loop has
        shut down by then, the SDK's transport raises "Event loop is closed";
        that error is dropped so it never replaces the result or the
        original failure. Any other RuntimeError propagates.
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
