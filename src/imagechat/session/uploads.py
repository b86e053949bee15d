"""Pending image uploads for the next outgoing message."""

import base64
import mimetypes
from pathlib import Path
from typing import TypeVar

from .models import UploadItem

MAX_UPLOADS = 14
UPLOAD_LIMIT_NOTICE = f"You can attach at most {MAX_UPLOADS} images"

T = TypeVar("T")


def limit_uploads(existing_count: int, incoming: list[T]) -> list[T]:
    """Return the prefix of incoming that still fits under MAX_UPLOADS."""
    remaining = max(0, MAX_UPLOADS - existing_count)
    return incoming[:remaining]


def upload_from_bytes(name: str, data: bytes, mime_type: str | None = None) -> UploadItem:
    """Wrap raw image bytes as an UploadItem."""
    mime = mime_type or mimetypes.guess_type(name)[0] or "image/png"
    encoded = base64.b64encode(data).decode("ascii")
    return UploadItem(
        name=name,
        mime_type=mime,
        base64=encoded,
        data_url=f"data:{mime};base64,{encoded}",
    )


def load_upload(path: str | Path) -> UploadItem:
    """Read an image file into an UploadItem.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not an image
    """
    file_path = Path(path)
    mime_type = mimetypes.guess_type(file_path.name)[0]
    if mime_type is None or not mime_type.startswith("image/"):
        raise ValueError(f"Not an image file: {file_path.name}")
    return upload_from_bytes(file_path.name, file_path.read_bytes(), mime_type)
