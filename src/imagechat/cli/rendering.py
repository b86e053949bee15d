"""Terminal rendering of timeline messages and image export."""

import base64
import binascii
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from ..session.models import Message, Role, UploadItem

SHORT_ID_LENGTH = 8


def short_id(identifier: str) -> str:
    """Display form of an id; its random tail is unique enough to type back."""
    return identifier[-SHORT_ID_LENGTH:]


def save_image(image_data: str, directory: Path, stem: str | None = None) -> Path:
    """Write a base64 image to directory as PNG.

    Raises:
        ValueError: If the payload is not valid base64
    """
    try:
        raw = base64.b64decode(image_data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid image payload: {e}") from e

    directory.mkdir(parents=True, exist_ok=True)
    name = stem or f"imagechat-{datetime.now().strftime('%Y%m%d-%H%M%S-%f')}"
    path = directory / f"{name}.png"
    path.write_bytes(raw)
    return path


def _image_note(image_data: str) -> str:
    size_kb = len(image_data) * 3 // 4 // 1024
    return f"[image, {size_kb} KB]"


def render_message(console: Console, message: Message, saved_path: Path | None = None) -> None:
    """Print one timeline message."""
    ident = short_id(message.id)

    if message.role == Role.SYSTEM:
        style = "red" if message.is_error else "yellow"
        hint = "  (/retry to resend)" if message.retry_context else ""
        console.print(Text(f"#{ident} {message.text}{hint}", style=style))
        return

    if message.role == Role.USER:
        body = Text(message.text or "")
        if message.images:
            body.append(f"\n[{len(message.images)} attached image(s)]", style="dim")
        console.print(Panel(body, title=f"you #{ident}", title_align="left", border_style="cyan"))
        return

    renderables = []
    for part in message.parts or []:
        if part.thought:
            renderables.append(Text(part.text, style="dim italic"))
    answer = message.text or ""
    if answer:
        renderables.append(Markdown(answer))
    if message.image_data:
        note = _image_note(message.image_data)
        if saved_path is not None:
            note = f"{note} saved to {saved_path}"
        renderables.append(Text(note, style="green"))
    if not renderables:
        renderables.append(Text("(empty reply)", style="dim"))

    for index, renderable in enumerate(renderables):
        title = f"model #{ident}" if index == 0 else None
        console.print(Panel(renderable, title=title, title_align="left", border_style="magenta"))


def render_uploads(console: Console, uploads: list[UploadItem]) -> None:
    if not uploads:
        console.print("[dim]No pending uploads[/dim]")
        return
    for item in uploads:
        console.print(f"[cyan]{short_id(item.id)}[/cyan] {item.name} [dim]({item.mime_type})[/dim]")
