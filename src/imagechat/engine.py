"""The conversation session engine.

ChatSession owns the single active SessionState. State changes go through
the pure reducer; after each change that touches persisted fields a
best-effort snapshot is written. send_prompt is the top-level operation:
it never raises, every failure ends up as one system error message.
"""

import logging
from collections.abc import Callable, Sequence

from .config import ApiSettings, ConfigAccessor
from .errors import ChatError
from .llm.base import ImageProvider
from .llm.factory import provider_from_settings
from .llm.models import AspectRatio, GenerationResult, ImageSize, InlineData
from .router import NO_IMAGE_TO_EDIT, RequestContext, classify, dispatch, effective_options, ensure_supported
from .session.actions import (
    Action,
    AddUploads,
    AppendMessage,
    ClearUploads,
    DeleteMessage,
    RemoveUpload,
    ReplaceHistory,
    Reset,
    RestoreSnapshot,
    SetLastImage,
    SetLoading,
    SetOptions,
    SetPrompt,
    SetSavedMeta,
)
from .session.models import (
    ChatMode,
    Message,
    RetryContext,
    Role,
    SessionOptions,
    SessionState,
    SnapshotPayload,
    UploadItem,
    new_session_id,
    system_message,
    user_message,
)
from .session.reducer import reduce
from .session.uploads import UPLOAD_LIMIT_NOTICE, limit_uploads
from .storage.persistence import PersistenceManager

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error: "
EDIT_LABEL = "✏️ "
SEARCH_LABEL = "🔍 "
NO_SAVED_CONVERSATION = "No saved conversation found to restore"
NOTHING_TO_RETRY = "This message has nothing to retry"

FORCE_IMAGE_GUIDANCE_PREFIX = (
    "Generate an image directly from the request below; do not reply with text only.\n"
    "If you can call tools or functions, call the image generation tool in your "
    "environment to produce the image instead of returning a description or a prompt."
)

ProviderFactory = Callable[[ApiSettings], ImageProvider]


def apply_force_image_guidance(prompt: str) -> str:
    """Prefix the image guidance instruction unless it is already there."""
    trimmed_start = prompt.lstrip()
    if not trimmed_start:
        return FORCE_IMAGE_GUIDANCE_PREFIX

    first_line = FORCE_IMAGE_GUIDANCE_PREFIX.split("\n", 1)[0]
    if trimmed_start.startswith(first_line):
        return prompt
    return f"{FORCE_IMAGE_GUIDANCE_PREFIX}\n\n{prompt}"


def build_user_label(mode: ChatMode, text: str) -> str:
    if mode == ChatMode.EDIT:
        return f"{EDIT_LABEL}{text}"
    if mode == ChatMode.SEARCH:
        return f"{SEARCH_LABEL}{text}"
    return text


def assistant_message(result: GenerationResult) -> Message:
    return Message(
        role=Role.ASSISTANT,
        text=result.text,
        parts=result.parts or None,
        image_data=result.image_data,
    )


def _error_message(text: str, retry_context: RetryContext | None = None) -> AppendMessage:
    return AppendMessage(system_message(f"{ERROR_PREFIX}{text}", is_error=True, retry_context=retry_context))


def _persisted_view(state: SessionState) -> tuple:
    return (
        state.session_id,
        state.messages,
        state.history,
        state.prompt,
        state.options,
        state.last_image_data,
    )


class ChatSession:
    """Single conversation session driven by discrete actions.

    Hidden design decisions:
    - When snapshots are written (only after persisted fields change)
    - How a send is split into optimistic state, routing and result
    - How every failure is folded into the timeline
    """

    def __init__(
        self,
        config: ConfigAccessor,
        persistence: PersistenceManager,
        state: SessionState | None = None,
        provider_factory: ProviderFactory = provider_from_settings,
    ):
        """Initialize a session.

        The initial state is taken as-is and not written back, so opening
        a session never overwrites a previously saved snapshot.

        Args:
            config: Read-only API configuration accessor
            persistence: Snapshot and preference storage
            state: Initial state (None starts an empty session)
            provider_factory: Builds the provider for the current settings
        """
        self._config = config
        self._persistence = persistence
        self._provider_factory = provider_factory
        self._state = state or SessionState()

    @classmethod
    async def open(
        cls,
        config: ConfigAccessor,
        persistence: PersistenceManager,
        provider_factory: ProviderFactory = provider_from_settings,
    ) -> "ChatSession":
        """Start a fresh session, picking up the stored preference and saved-snapshot metadata."""
        guidance = await persistence.read_guidance()
        saved = await persistence.load()
        state = SessionState(
            options=SessionOptions(force_image_guidance=guidance),
            has_saved_conversation=saved is not None,
            saved_conversation_at=saved.saved_at if saved else None,
        )
        return cls(config, persistence, state=state, provider_factory=provider_factory)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def settings(self) -> ApiSettings:
        """Current API settings, read fresh from the accessor."""
        return self._config.get_settings()

    async def dispatch(self, *actions: Action) -> SessionState:
        """Apply actions in order and persist once if they changed anything worth saving.

        All actions are reduced before the first await, so no other task can
        observe a partially applied batch.
        """
        previous = self._state
        state = previous
        for action in actions:
            state = reduce(state, action)
        self._state = state
        if _persisted_view(previous) != _persisted_view(self._state):
            await self._sync_persistence()
        return self._state

    async def _sync_persistence(self) -> None:
        state = self._state
        if not state.has_conversation():
            if state.has_saved_conversation:
                await self._persistence.clear()
                self._state = reduce(self._state, SetSavedMeta(False, None))
            return

        outcome = await self._persistence.save(SnapshotPayload.from_state(state))
        if not outcome.saved:
            return
        if outcome.did_fallback:
            logger.warning("Snapshot saved without image data")
        self._state = reduce(self._state, SetSavedMeta(True, outcome.saved_at))

    async def _append_notice(
        self,
        text: str,
        is_error: bool = False,
        retry_context: RetryContext | None = None,
    ) -> None:
        await self.dispatch(AppendMessage(system_message(text, is_error, retry_context)))

    async def _append_error(self, text: str, retry_context: RetryContext | None = None) -> None:
        await self.dispatch(_error_message(text, retry_context))

    # Simple setters

    async def set_prompt(self, text: str) -> None:
        await self.dispatch(SetPrompt(text))

    async def set_aspect_ratio(self, value: AspectRatio) -> None:
        await self.dispatch(SetOptions(aspect_ratio=AspectRatio(value)))

    async def set_image_size(self, value: ImageSize) -> None:
        await self.dispatch(SetOptions(image_size=ImageSize(value)))

    async def set_force_image_guidance(self, value: bool) -> None:
        await self._persistence.write_guidance(value)
        await self.dispatch(SetOptions(force_image_guidance=value))

    # Uploads

    async def add_uploads(self, items: Sequence[UploadItem]) -> list[UploadItem]:
        """Queue uploads for the next message.

        Items beyond the upload limit are rejected with a single notice.

        Returns:
            The items that were admitted
        """
        incoming = list(items)
        if not incoming:
            return []

        admitted = limit_uploads(len(self._state.uploads), incoming)
        if len(incoming) > len(admitted):
            await self._append_notice(UPLOAD_LIMIT_NOTICE, is_error=True)
        if admitted:
            await self.dispatch(AddUploads(tuple(admitted)))
        return admitted

    async def remove_upload(self, upload_id: str) -> None:
        await self.dispatch(RemoveUpload(upload_id))

    # Timeline

    async def delete_message(self, message_id: str) -> None:
        await self.dispatch(DeleteMessage(message_id))

    async def restore_saved(self) -> bool:
        """Replace the session with the saved snapshot, if there is a usable one."""
        snapshot = await self._persistence.load()
        if snapshot is None:
            await self._append_notice(NO_SAVED_CONVERSATION, is_error=True)
            return False

        await self._persistence.write_guidance(snapshot.payload.options.force_image_guidance)
        await self.dispatch(RestoreSnapshot(snapshot))
        return True

    async def clear_saved(self) -> None:
        await self._persistence.clear()
        self._state = reduce(self._state, SetSavedMeta(False, None))

    async def reset(self) -> None:
        """Discard the conversation and its snapshot, keeping the guidance preference."""
        await self._persistence.clear()
        await self.dispatch(Reset(
            session_id=new_session_id(),
            force_image_guidance=self._state.options.force_image_guidance,
        ))

    # Sending

    async def send_prompt(self, mode: ChatMode = ChatMode.GENERATE) -> None:
        """Send the pending prompt and uploads.

        Does nothing while a request is in flight, or when the prompt is
        empty outside edit mode. Never raises: failures become one system
        error message and the loading flag is always released.
        """
        state = self._state
        await self._send(
            ChatMode(mode),
            state.prompt.strip(),
            [item.to_inline_data() for item in state.uploads],
            from_pending=True,
        )

    async def retry(self, message_id: str) -> None:
        """Re-send the request recorded on a failed message.

        The recorded prompt and images are sent as they were; the pending
        prompt and uploads are left untouched.
        """
        if self._state.loading:
            logger.debug("Retry ignored, a request is already in flight")
            return

        message = self._state.find_message(message_id)
        if message is None or message.retry_context is None:
            await self._append_notice(NOTHING_TO_RETRY, is_error=True)
            return

        context = message.retry_context
        await self._send(context.mode, context.prompt, list(context.upload_items), from_pending=False)

    async def _send(
        self,
        mode: ChatMode,
        trimmed: str,
        images: list[InlineData],
        from_pending: bool,
    ) -> None:
        # Nothing may be awaited between the loading check and SetLoading(True)
        state = self._state
        if state.loading:
            logger.debug("Send ignored, a request is already in flight")
            return

        try:
            settings = self._config.get_settings()
            ensure_supported(mode, settings.api_type)
        except ChatError as e:
            await self._append_error(e.message)
            return
        except Exception as e:
            logger.exception("Cannot read API configuration")
            await self._append_error(str(e) or type(e).__name__)
            return

        if not trimmed and mode != ChatMode.EDIT:
            return
        if mode == ChatMode.EDIT and not state.last_image_data:
            await self._append_error(NO_IMAGE_TO_EDIT)
            return

        prompt_text = apply_force_image_guidance(trimmed) if state.options.force_image_guidance else trimmed
        user_text = build_user_label(mode, prompt_text)
        data_urls = [f"data:{image.mime_type};base64,{image.data}" for image in images]
        retry_context = RetryContext(
            mode=mode,
            prompt=trimmed,
            upload_data_urls=data_urls,
            upload_items=images,
        )

        optimistic: list[Action] = [AppendMessage(user_message(user_text, data_urls))]
        if from_pending:
            optimistic += [ClearUploads(), SetPrompt("")]
        await self.dispatch(*optimistic, SetLoading(True))

        kind = classify(mode, bool(images))
        ctx = RequestContext(
            prompt_text=prompt_text,
            labelled_prompt=user_text,
            images=images,
            history=state.history,
            options=effective_options(settings.api_type, state.options.generation_options()),
            last_image_data=state.last_image_data,
        )

        outcome: list[Action] = []
        try:
            settings.require_credentials()
            async with self._provider_factory(settings) as provider:
                result = await dispatch(kind, ctx, provider)
        except ChatError as e:
            logger.info("%s request failed: %s", kind.value, e)
            outcome.append(_error_message(str(e), retry_context))
        except Exception as e:
            logger.exception("Unexpected failure during %s request", kind.value)
            outcome.append(_error_message(str(e) or type(e).__name__, retry_context))
        else:
            if result.grounding_metadata:
                logger.debug("Grounding metadata: %s", result.grounding_metadata)
            outcome += [AppendMessage(assistant_message(result)), ReplaceHistory(tuple(result.history))]
            if result.image_data:
                outcome.append(SetLastImage(result.image_data))
        finally:
            await self.dispatch(*outcome, SetLoading(False))
