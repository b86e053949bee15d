"""Data models for the conversation session.

These define the display timeline and the complete session state,
independent of any provider wire format or storage backend.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from uuid_extensions import uuid7str

from ..llm.models import (
    AspectRatio,
    GenerationOptions,
    HistoryEntry,
    ImageSize,
    InlineData,
    TextPart,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    """Unique, generation-ordered message id."""
    return uuid7str()


def new_session_id() -> str:
    return str(uuid4())


class Role(str, Enum):
    """Author of a timeline message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMode(str, Enum):
    """What the user asked for when sending."""

    GENERATE = "generate"
    EDIT = "edit"
    SEARCH = "search"


class RetryContext(BaseModel):
    """Everything needed to recompose a failed request."""

    model_config = ConfigDict(frozen=True)

    mode: ChatMode
    prompt: str
    upload_data_urls: list[str] = Field(default_factory=list)
    upload_items: list[InlineData] = Field(default_factory=list)


class Message(BaseModel):
    """A single entry of the display timeline."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    role: Role
    text: str = ""
    parts: list[TextPart] | None = Field(
        default=None,
        description="Structured segments of an assistant reply (reasoning + answer)"
    )
    images: list[str] | None = Field(default=None, description="Data URLs of user attachments")
    image_data: str | None = Field(default=None, description="Base64 of a generated image")
    is_error: bool = False
    retry_context: RetryContext | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class UploadItem(BaseModel):
    """An image waiting to be sent with the next message."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    mime_type: str
    base64: str
    data_url: str
    width: int | None = None
    height: int | None = None

    def to_inline_data(self) -> InlineData:
        return InlineData(mime_type=self.mime_type, data=self.base64)


class SessionOptions(BaseModel):
    """User-selected generation settings."""

    model_config = ConfigDict(frozen=True)

    aspect_ratio: AspectRatio = AspectRatio.SQUARE
    image_size: ImageSize = ImageSize.TWO_K
    force_image_guidance: bool = False

    def generation_options(self) -> GenerationOptions:
        return GenerationOptions(aspect_ratio=self.aspect_ratio, image_size=self.image_size)


class SessionState(BaseModel):
    """Complete state of the single active conversation.

    Owned exclusively by the reducer; every transition yields a new value.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(default_factory=new_session_id)
    messages: list[Message] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    prompt: str = ""
    options: SessionOptions = Field(default_factory=SessionOptions)
    uploads: list[UploadItem] = Field(default_factory=list)
    last_image_data: str | None = None
    loading: bool = False
    has_saved_conversation: bool = False
    saved_conversation_at: datetime | None = None

    def has_conversation(self) -> bool:
        return bool(self.messages or self.history or self.last_image_data)

    def find_message(self, message_id: str) -> Message | None:
        return next((m for m in self.messages if m.id == message_id), None)


def system_message(text: str, is_error: bool = False, retry_context: RetryContext | None = None) -> Message:
    return Message(role=Role.SYSTEM, text=text, is_error=is_error, retry_context=retry_context)


def user_message(text: str, images: list[str]) -> Message:
    return Message(role=Role.USER, text=text, images=images or None)


SNAPSHOT_VERSION = 1


class SnapshotPayload(BaseModel):
    """The parts of a session that survive a restart."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    messages: list[Message] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    prompt: str = ""
    options: SessionOptions = Field(default_factory=SessionOptions)
    last_image_data: str | None = None

    @classmethod
    def from_state(cls, state: SessionState) -> "SnapshotPayload":
        return cls(
            session_id=state.session_id,
            messages=state.messages,
            history=state.history,
            prompt=state.prompt,
            options=state.options,
            last_image_data=state.last_image_data,
        )


class Snapshot(BaseModel):
    """Versioned envelope written to the durable store."""

    model_config = ConfigDict(frozen=True)

    version: Literal[1] = SNAPSHOT_VERSION
    saved_at: datetime
    payload: SnapshotPayload
