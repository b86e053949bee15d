"""Closed set of session actions.

Each action is a frozen value; the reducer matches on them exhaustively.
"""

from dataclasses import dataclass
from datetime import datetime

from ..llm.models import AspectRatio, HistoryEntry, ImageSize
from .models import Message, Snapshot, UploadItem


@dataclass(frozen=True)
class SetPrompt:
    text: str


@dataclass(frozen=True)
class SetOptions:
    """Change any subset of the generation options; None leaves a field as is."""

    aspect_ratio: AspectRatio | None = None
    image_size: ImageSize | None = None
    force_image_guidance: bool | None = None


@dataclass(frozen=True)
class AddUploads:
    items: tuple[UploadItem, ...]


@dataclass(frozen=True)
class RemoveUpload:
    upload_id: str


@dataclass(frozen=True)
class ClearUploads:
    pass


@dataclass(frozen=True)
class AppendMessage:
    message: Message


@dataclass(frozen=True)
class ReplaceHistory:
    history: tuple[HistoryEntry, ...]


@dataclass(frozen=True)
class SetLastImage:
    image_data: str | None


@dataclass(frozen=True)
class SetLoading:
    loading: bool


@dataclass(frozen=True)
class DeleteMessage:
    message_id: str


@dataclass(frozen=True)
class RestoreSnapshot:
    snapshot: Snapshot


@dataclass(frozen=True)
class SetSavedMeta:
    has_saved_conversation: bool
    saved_conversation_at: datetime | None = None


@dataclass(frozen=True)
class Reset:
    session_id: str
    force_image_guidance: bool = False


Action = (
    SetPrompt
    | SetOptions
    | AddUploads
    | RemoveUpload
    | ClearUploads
    | AppendMessage
    | ReplaceHistory
    | SetLastImage
    | SetLoading
    | DeleteMessage
    | RestoreSnapshot
    | SetSavedMeta
    | Reset
)
