"""Request routing: which request shape to issue and which adapter runs it.

The request kind is a closed set; dispatch matches on it exhaustively so
adding a kind without a handler is caught by the type checker.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import assert_never

from .config import ApiType
from .errors import CapabilityError
from .llm.base import ImageProvider
from .llm.factory import provider_class
from .llm.models import (
    SAFE_GENERATION_OPTIONS,
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
    HistoryEntry,
    InlineData,
)
from .session.models import ChatMode

NO_IMAGE_TO_EDIT = "There is no image to edit"
UNSUPPORTED_MODE = "{mode} is not supported in {api_type} mode"


class RequestKind(str, Enum):
    """Outbound request shape."""

    EDIT = "edit"
    COMPOSITE = "composite"
    SEARCH = "search"
    GENERATE = "generate"


@dataclass(frozen=True)
class RequestContext:
    """Inputs available to every request handler."""

    prompt_text: str
    labelled_prompt: str
    images: list[InlineData] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    options: GenerationOptions = field(default_factory=GenerationOptions)
    last_image_data: str | None = None


def classify(mode: ChatMode, has_uploads: bool) -> RequestKind:
    """Decide the request kind for a send."""
    if mode == ChatMode.EDIT:
        return RequestKind.EDIT
    if has_uploads:
        return RequestKind.COMPOSITE
    if mode == ChatMode.SEARCH:
        return RequestKind.SEARCH
    return RequestKind.GENERATE


def ensure_supported(mode: ChatMode, api_type: ApiType) -> None:
    """Reject modes the active provider cannot serve, before any request is built.

    Raises:
        CapabilityError: If the provider lacks edit or search support
    """
    cls = provider_class(api_type)
    if (mode == ChatMode.EDIT and not cls.supports_edit) or (
        mode == ChatMode.SEARCH and not cls.supports_search
    ):
        label = "OpenAI-compatible" if api_type == ApiType.OPENAI else api_type.value
        raise CapabilityError(UNSUPPORTED_MODE.format(mode=mode.value.capitalize(), api_type=label))


def effective_options(api_type: ApiType, options: GenerationOptions) -> GenerationOptions:
    """Options to forward; providers without image settings get safe defaults."""
    if api_type == ApiType.OPENAI:
        return SAFE_GENERATION_OPTIONS
    return options


async def _handle_edit(provider: ImageProvider, ctx: RequestContext) -> GenerationResult:
    if not ctx.last_image_data:
        raise CapabilityError(NO_IMAGE_TO_EDIT)
    return await provider.edit_image(GenerationRequest(
        prompt=ctx.prompt_text,
        images=[InlineData(data=ctx.last_image_data)],
        history=ctx.history,
        options=ctx.options,
    ))


async def _handle_composite(provider: ImageProvider, ctx: RequestContext) -> GenerationResult:
    return await provider.composite_images(GenerationRequest(
        prompt=ctx.labelled_prompt,
        images=ctx.images,
        history=ctx.history,
        options=ctx.options,
    ))


async def _handle_search(provider: ImageProvider, ctx: RequestContext) -> GenerationResult:
    return await provider.generate_with_search(GenerationRequest(
        prompt=ctx.prompt_text,
        history=ctx.history,
        options=ctx.options,
    ))


async def _handle_generate(provider: ImageProvider, ctx: RequestContext) -> GenerationResult:
    return await provider.generate_image(GenerationRequest(
        prompt=ctx.labelled_prompt,
        history=ctx.history,
        options=ctx.options,
    ))


async def dispatch(kind: RequestKind, ctx: RequestContext, provider: ImageProvider) -> GenerationResult:
    """Run the handler for a request kind against the active provider."""
    match kind:
        case RequestKind.EDIT:
            return await _handle_edit(provider, ctx)
        case RequestKind.COMPOSITE:
            return await _handle_composite(provider, ctx)
        case RequestKind.SEARCH:
            return await _handle_search(provider, ctx)
        case RequestKind.GENERATE:
            return await _handle_generate(provider, ctx)
        case _:
            assert_never(kind)
