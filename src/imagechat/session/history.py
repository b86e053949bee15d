"""Derive provider history from the display timeline.

rebuild_history is the single source of truth for what the model
remembers after the timeline is edited. It is re-run in full rather than
patched, so deletions can never leave stale turns behind.
"""

import re

from ..llm.models import ContentPart, HistoryEntry, InlineData
from .models import Message, Role

DATA_URL_PATTERN = re.compile(r"^data:(.+?);base64,(.*)$")


def data_url_to_inline_data(data_url: str) -> InlineData | None:
    """Parse a base64 data URL; None when it is not one."""
    if not data_url or not isinstance(data_url, str):
        return None
    match = DATA_URL_PATTERN.match(data_url)
    if not match or not match.group(2):
        return None
    return InlineData(mime_type=match.group(1) or "image/png", data=match.group(2))


def _user_entry(message: Message) -> HistoryEntry:
    parts = [ContentPart.of_text(message.text or "")]
    for data_url in message.images or []:
        inline = data_url_to_inline_data(data_url)
        if inline is not None:
            parts.append(ContentPart(inline_data=inline))
    return HistoryEntry(role="user", parts=parts)


def _assistant_entry(message: Message) -> HistoryEntry:
    parts = []
    answer_texts = [p.text for p in message.parts or [] if p.text and not p.thought]
    if answer_texts:
        parts.append(ContentPart.of_text("\n\n".join(answer_texts)))
    elif message.text:
        parts.append(ContentPart.of_text(message.text))

    if message.image_data:
        parts.append(ContentPart.of_image(message.image_data))

    # Wire formats reject empty content lists
    return HistoryEntry(role="model", parts=parts or [ContentPart.of_text("")])


def rebuild_history(messages: list[Message]) -> list[HistoryEntry]:
    """Replay the timeline into provider history, skipping system messages."""
    history = []
    for message in messages:
        if message.role == Role.USER:
            history.append(_user_entry(message))
        elif message.role == Role.ASSISTANT:
            history.append(_assistant_entry(message))
    return history


def resolve_last_image_data(messages: list[Message]) -> str | None:
    """Image of the most recent assistant message that carries one."""
    for message in reversed(messages):
        if message.role == Role.ASSISTANT and message.image_data:
            return message.image_data
    return None
