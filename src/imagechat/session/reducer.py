"""Pure session state transitions.

reduce never fails part way: each action maps to exactly one new state.
"""

from typing import assert_never

from ..llm.models import without_thoughts
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
from .history import rebuild_history, resolve_last_image_data
from .models import SNAPSHOT_VERSION, SessionOptions, SessionState


def _apply_options(options: SessionOptions, action: SetOptions) -> SessionOptions:
    changes = {
        name: value
        for name, value in (
            ("aspect_ratio", action.aspect_ratio),
            ("image_size", action.image_size),
            ("force_image_guidance", action.force_image_guidance),
        )
        if value is not None
    }
    return options.model_copy(update=changes)


def reduce(state: SessionState, action: Action) -> SessionState:
    """Apply one action to the session state."""
    match action:
        case SetPrompt(text=text):
            return state.model_copy(update={"prompt": text})

        case SetOptions():
            return state.model_copy(update={"options": _apply_options(state.options, action)})

        case AddUploads(items=items):
            return state.model_copy(update={"uploads": [*state.uploads, *items]})

        case RemoveUpload(upload_id=upload_id):
            uploads = [item for item in state.uploads if item.id != upload_id]
            return state.model_copy(update={"uploads": uploads})

        case ClearUploads():
            return state.model_copy(update={"uploads": []})

        case AppendMessage(message=message):
            return state.model_copy(update={"messages": [*state.messages, message]})

        case ReplaceHistory(history=history):
            return state.model_copy(update={"history": without_thoughts(list(history))})

        case SetLastImage(image_data=image_data):
            return state.model_copy(update={"last_image_data": image_data})

        case SetLoading(loading=loading):
            return state.model_copy(update={"loading": loading})

        case DeleteMessage(message_id=message_id):
            messages = [m for m in state.messages if m.id != message_id]
            if len(messages) == len(state.messages):
                return state
            return state.model_copy(update={
                "messages": messages,
                "history": rebuild_history(messages),
                "last_image_data": resolve_last_image_data(messages),
            })

        case RestoreSnapshot(snapshot=snapshot):
            if snapshot.version != SNAPSHOT_VERSION:
                return state
            payload = snapshot.payload
            return state.model_copy(update={
                "session_id": payload.session_id or state.session_id,
                "messages": payload.messages,
                "history": without_thoughts(payload.history),
                "prompt": payload.prompt,
                "options": payload.options,
                "uploads": [],
                "last_image_data": payload.last_image_data or resolve_last_image_data(payload.messages),
                "loading": False,
                "has_saved_conversation": True,
                "saved_conversation_at": snapshot.saved_at,
            })

        case SetSavedMeta(has_saved_conversation=has_saved, saved_conversation_at=saved_at):
            return state.model_copy(update={
                "has_saved_conversation": has_saved,
                "saved_conversation_at": saved_at,
            })

        case Reset(session_id=session_id, force_image_guidance=force_image_guidance):
            return SessionState(
                session_id=session_id,
                options=SessionOptions(force_image_guidance=force_image_guidance),
            )

        case _:
            assert_never(action)
