"""Best-effort snapshot persistence for the active session.

Nothing here raises: a failed write degrades to a slimmed snapshot, then
to a logged no-op. The conversation must keep working when storage is
full or unavailable.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import ValidationError

from ..llm.models import ContentPart, HistoryEntry
from ..session.models import RetryContext, Snapshot, SnapshotPayload
from .base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "imagechat_chat_persist_v1"
GUIDANCE_KEY = "imagechat_force_image_guidance"


@dataclass(frozen=True)
class SaveOutcome:
    """Result of a save attempt.

    Attributes:
        saved_at: Timestamp written into the snapshot
        did_fallback: Image data was not durably preserved
        saved: Some snapshot was written
    """

    saved_at: datetime
    did_fallback: bool
    saved: bool = True


def _slim_history(history: list[HistoryEntry]) -> list[HistoryEntry]:
    slim = []
    for entry in history:
        parts = [
            ContentPart.of_text(part.text)
            for part in entry.parts
            if isinstance(part.text, str) and part.text.strip() and not part.thought
        ]
        slim.append(HistoryEntry(role=entry.role, parts=parts or [ContentPart.of_text("")]))
    return slim


def _slim_retry_context(context: RetryContext | None) -> RetryContext | None:
    if context is None:
        return None
    return context.model_copy(update={"upload_data_urls": [], "upload_items": []})


def slim_payload(payload: SnapshotPayload) -> SnapshotPayload:
    """Strip every image binary from a snapshot payload."""
    messages = [
        message.model_copy(update={
            "images": None,
            "image_data": None,
            "retry_context": _slim_retry_context(message.retry_context),
        })
        for message in payload.messages
    ]
    return payload.model_copy(update={
        "messages": messages,
        "history": _slim_history(payload.history),
        "last_image_data": None,
    })


class PersistenceManager:
    """Reads and writes the session snapshot and the guidance preference."""

    def __init__(
        self,
        store: KeyValueStore,
        snapshot_key: str = SNAPSHOT_KEY,
        guidance_key: str = GUIDANCE_KEY,
    ):
        self._store = store
        self._snapshot_key = snapshot_key
        self._guidance_key = guidance_key

    @property
    def store(self) -> KeyValueStore:
        return self._store

    async def save(self, payload: SnapshotPayload) -> SaveOutcome:
        """Write a snapshot, falling back to a slimmed one when the full one fails."""
        saved_at = datetime.now(timezone.utc)

        full = Snapshot(saved_at=saved_at, payload=payload)
        try:
            await self._store.set(self._snapshot_key, full.model_dump_json())
            return SaveOutcome(saved_at=saved_at, did_fallback=False)
        except StorageError as e:
            logger.info("Full snapshot write failed (%s), retrying without images", e)

        slim = Snapshot(saved_at=saved_at, payload=slim_payload(payload))
        try:
            await self._store.set(self._snapshot_key, slim.model_dump_json())
            return SaveOutcome(saved_at=saved_at, did_fallback=True)
        except StorageError as e:
            logger.warning("Cannot write conversation snapshot: %s", e)
            return SaveOutcome(saved_at=saved_at, did_fallback=True, saved=False)

    async def load(self) -> Snapshot | None:
        """Return the stored snapshot, or None when missing, malformed or outdated."""
        try:
            raw = await self._store.get(self._snapshot_key)
        except StorageError as e:
            logger.warning("Cannot read conversation snapshot: %s", e)
            return None
        if not raw:
            return None
        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError:
            logger.debug("Ignoring unreadable snapshot under %r", self._snapshot_key)
            return None

    async def clear(self) -> None:
        try:
            await self._store.delete(self._snapshot_key)
        except StorageError as e:
            logger.warning("Cannot clear conversation snapshot: %s", e)

    async def read_guidance(self) -> bool:
        try:
            return await self._store.get(self._guidance_key) == "true"
        except StorageError as e:
            logger.warning("Cannot read image guidance preference: %s", e)
            return False

    async def write_guidance(self, value: bool) -> None:
        try:
            await self._store.set(self._guidance_key, "true" if value else "false")
        except StorageError as e:
            logger.warning("Cannot write image guidance preference: %s", e)
