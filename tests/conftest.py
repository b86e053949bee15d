"""Pytest configuration and shared fixtures."""
from collections.abc import Callable

import pytest

from imagechat.config import ApiSettings, ApiType, StaticConfig
from imagechat.engine import ChatSession
from imagechat.llm.base import ImageProvider
from imagechat.llm.models import (
    ContentPart,
    GenerationRequest,
    GenerationResult,
    HistoryEntry,
    TextPart,
    user_entry,
)
from imagechat.storage import PersistenceManager, create_key_value_store

# Tiny valid base64 payloads standing in for image bytes
GENERATED_IMAGE = "aW1hZ2Ux"
UPLOADED_IMAGE = "dXBsb2Fk"


class FakeProvider(ImageProvider):
    """Provider double that records every call.

    Returns a text-plus-image reply unless ``result`` or ``error`` is set.
    """

    def __init__(self, result: GenerationResult | None = None, error: Exception | None = None):
        self.calls: list[tuple[str, GenerationRequest]] = []
        self.result = result
        self.error = error
        self.closed = 0

    async def _respond(self, method: str, request: GenerationRequest) -> GenerationResult:
        self.calls.append((method, request))
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return GenerationResult(
            text="Here you go",
            parts=[TextPart(text="Here you go")],
            image_data=GENERATED_IMAGE,
            history=[
                *request.history,
                user_entry(request.prompt, request.images),
                HistoryEntry(role="model", parts=[
                    ContentPart.of_text("Here you go"),
                    ContentPart.of_image(GENERATED_IMAGE),
                ]),
            ],
        )

    async def generate_image(self, request):
        return await self._respond("generate_image", request)

    async def edit_image(self, request):
        return await self._respond("edit_image", request)

    async def composite_images(self, request):
        return await self._respond("composite_images", request)

    async def generate_with_search(self, request):
        return await self._respond("generate_with_search", request)

    async def close(self):
        self.closed += 1


class RecordingFactory:
    """Provider factory that hands out one FakeProvider and remembers the settings it saw."""

    def __init__(self, provider: FakeProvider):
        self.provider = provider
        self.settings: list[ApiSettings] = []

    def __call__(self, settings: ApiSettings) -> ImageProvider:
        self.settings.append(settings)
        return self.provider


@pytest.fixture
def config():
    """Configured Gemini-type settings."""
    return StaticConfig(
        base_url="https://api.example.test",
        api_key="test-key",
        api_type=ApiType.GEMINI,
    )


@pytest.fixture
def store():
    """Return an unlimited in-memory store."""
    return create_key_value_store("memory")


@pytest.fixture
def persistence(store):
    return PersistenceManager(store)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def provider_factory(fake_provider):
    return RecordingFactory(fake_provider)


@pytest.fixture
def make_session(config, persistence, provider_factory) -> Callable[..., ChatSession]:
    """Build a session wired to the fake provider."""
    def _make(**kwargs) -> ChatSession:
        return ChatSession(config, persistence, provider_factory=provider_factory, **kwargs)
    return _make
