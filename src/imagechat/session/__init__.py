"""Conversation session state: models, actions and pure transitions."""

from .actions import (
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
from .history import data_url_to_inline_data, rebuild_history, resolve_last_image_data
from .models import (
    SNAPSHOT_VERSION,
    ChatMode,
    Message,
    RetryContext,
    Role,
    SessionOptions,
    SessionState,
    Snapshot,
    SnapshotPayload,
    UploadItem,
)
from .reducer import reduce
from .uploads import MAX_UPLOADS, limit_uploads, load_upload, upload_from_bytes

__all__ = [
    "Action",
    "AddUploads",
    "AppendMessage",
    "ClearUploads",
    "DeleteMessage",
    "RemoveUpload",
    "ReplaceHistory",
    "Reset",
    "RestoreSnapshot",
    "SetLastImage",
    "SetLoading",
    "SetOptions",
    "SetPrompt",
    "SetSavedMeta",
    "data_url_to_inline_data",
    "rebuild_history",
    "resolve_last_image_data",
    "SNAPSHOT_VERSION",
    "ChatMode",
    "Message",
    "RetryContext",
    "Role",
    "SessionOptions",
    "SessionState",
    "Snapshot",
    "SnapshotPayload",
    "UploadItem",
    "reduce",
    "MAX_UPLOADS",
    "limit_uploads",
    "load_upload",
    "upload_from_bytes",
]
