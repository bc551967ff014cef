"""Inbound notifications from the editor host."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .models import EditorContext

ContextProvider = Callable[[], Optional[EditorContext]]


class HostEventKind(str, Enum):
    ACTIVE_CONTEXT_CHANGED = "active_context_changed"
    CONTENT_CHANGED = "content_changed"
    SELECTION_CHANGED = "selection_changed"
    WINDOW_FOCUS_CHANGED = "window_focus_changed"
    WORKSPACE_FOLDERS_CHANGED = "workspace_folders_changed"
    TERMINAL_ACTIVITY = "terminal_activity"
    TICK = "tick"


@dataclass(slots=True, frozen=True)
class HostEvent:
    kind: HostEventKind
    context: Optional[EditorContext] = None
    edited_characters: int = 0
    focused: bool = True

    @classmethod
    def context_changed(cls, context: Optional[EditorContext]) -> "HostEvent":
        return cls(HostEventKind.ACTIVE_CONTEXT_CHANGED, context=context)

    @classmethod
    def content_changed(cls, edited_characters: int) -> "HostEvent":
        return cls(HostEventKind.CONTENT_CHANGED, edited_characters=edited_characters)

    @classmethod
    def focus_changed(cls, focused: bool) -> "HostEvent":
        return cls(HostEventKind.WINDOW_FOCUS_CHANGED, focused=focused)

    @classmethod
    def of(cls, kind: HostEventKind) -> "HostEvent":
        return cls(kind)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HostEvent":
        """Build an event from its JSON form, e.g. ``{"type": "tick"}``."""
        kind = HostEventKind(data["type"])
        raw_context = data.get("context")
        return cls(
            kind=kind,
            context=EditorContext.from_dict(raw_context) if raw_context else None,
            edited_characters=int(data.get("editedCharacters", 0)),
            focused=bool(data.get("focused", True)),
        )


class LastReportedContext:
    """Answers the "current editor context" query from reported events.

    Used when the host pushes notifications instead of being queryable.
    """

    def __init__(self) -> None:
        self._context: Optional[EditorContext] = None

    def observe(self, event: HostEvent) -> None:
        if event.kind is HostEventKind.ACTIVE_CONTEXT_CHANGED:
            self._context = event.context

    def __call__(self) -> Optional[EditorContext]:
        return self._context
