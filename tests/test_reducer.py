"""Unit tests for the session reducer."""
from datetime import datetime, timezone

from imagechat.llm.models import AspectRatio, ContentPart, HistoryEntry, ImageSize
from imagechat.session.actions import (
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
from imagechat.session.models import (
    Message,
    Role,
    SessionOptions,
    SessionState,
    Snapshot,
    SnapshotPayload,
    UploadItem,
    user_message,
)
from imagechat.session.reducer import reduce


def _upload(name: str) -> UploadItem:
    return UploadItem(name=name, mime_type="image/png", base64="eA==", data_url="data:image/png;base64,eA==")


class TestSimpleActions:
    """Tests for field-setting actions."""

    def test_set_prompt(self):
        state = reduce(SessionState(), SetPrompt("hello"))
        assert state.prompt == "hello"

    def test_set_options_partial(self):
        state = SessionState(options=SessionOptions(image_size=ImageSize.FOUR_K))
        state = reduce(state, SetOptions(aspect_ratio=AspectRatio.TALL))

        assert state.options.aspect_ratio == AspectRatio.TALL
        assert state.options.image_size == ImageSize.FOUR_K
        assert state.options.force_image_guidance is False

    def test_uploads(self):
        a, b = _upload("a.png"), _upload("b.png")
        state = reduce(SessionState(), AddUploads((a, b)))
        state = reduce(state, RemoveUpload(a.id))
        assert state.uploads == [b]

        state = reduce(state, ClearUploads())
        assert state.uploads == []

    def test_loading_and_last_image(self):
        state = reduce(SessionState(), SetLoading(True))
        state = reduce(state, SetLastImage("aW1n"))
        assert state.loading is True
        assert state.last_image_data == "aW1n"

    def test_input_state_is_not_mutated(self):
        original = SessionState()
        reduce(original, AppendMessage(user_message("hi", [])))
        assert original.messages == []


class TestHistoryActions:
    """Tests for history replacement and deletion."""

    def test_replace_history_strips_reasoning(self):
        history = (
            HistoryEntry(role="user", parts=[ContentPart.of_text("a cat")]),
            HistoryEntry(role="model", parts=[ContentPart(text="hmm", thought=True)]),
        )
        state = reduce(SessionState(), ReplaceHistory(history))

        assert state.history[0] == history[0]
        assert state.history[1].parts == [ContentPart.of_text("")]

    def test_delete_unknown_message_is_noop(self):
        state = SessionState(messages=[user_message("hi", [])])
        assert reduce(state, DeleteMessage("missing")) is state

    def test_delete_recomputes_last_image(self):
        first = Message(role=Role.ASSISTANT, text="one", image_data="MQ==")
        second = Message(role=Role.ASSISTANT, text="two", image_data="Mg==")
        state = SessionState(messages=[first, second], last_image_data="Mg==")

        state = reduce(state, DeleteMessage(second.id))
        assert state.last_image_data == "MQ=="


class TestSnapshotActions:
    """Tests for restore, saved metadata and reset."""

    def test_restore_snapshot(self):
        saved_at = datetime(2026, 1, 2, tzinfo=timezone.utc)
        assistant = Message(role=Role.ASSISTANT, text="done", image_data="aW1n")
        snapshot = Snapshot(
            saved_at=saved_at,
            payload=SnapshotPayload(
                session_id="saved-session",
                messages=[assistant],
                prompt="draft",
                options=SessionOptions(aspect_ratio=AspectRatio.WIDE),
            ),
        )
        state = SessionState(uploads=[_upload("a.png")], loading=True)

        state = reduce(state, RestoreSnapshot(snapshot))

        assert state.session_id == "saved-session"
        assert state.messages == [assistant]
        assert state.prompt == "draft"
        assert state.options.aspect_ratio == AspectRatio.WIDE
        assert state.uploads == []
        assert state.loading is False
        assert state.last_image_data == "aW1n"
        assert state.has_saved_conversation is True
        assert state.saved_conversation_at == saved_at

    def test_saved_meta(self):
        now = datetime.now(timezone.utc)
        state = reduce(SessionState(), SetSavedMeta(True, now))
        assert state.has_saved_conversation is True
        assert state.saved_conversation_at == now

    def test_reset(self):
        state = SessionState(
            messages=[user_message("hi", [])],
            prompt="draft",
            last_image_data="aW1n",
            has_saved_conversation=True,
        )
        state = reduce(state, Reset(session_id="fresh", force_image_guidance=True))

        assert state.session_id == "fresh"
        assert state.messages == []
        assert state.prompt == ""
        assert state.last_image_data is None
        assert state.has_saved_conversation is False
        assert state.options.force_image_guidance is True
