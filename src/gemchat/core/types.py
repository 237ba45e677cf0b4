"""Transcript and completion data types."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

from gemchat.errors import TurnFailedError

Role = Literal["user", "model", "tool-result"]


@dataclass(frozen=True)
class Attachment:
    """Binary payload sent along with a user turn."""

    mime_type: str
    data: str  # base64


@dataclass(frozen=True)
class TextPart:
    text: str
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AttachmentPart:
    mime_type: str
    data: str
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallPart:
    name: str
    arguments: Mapping[str, Any]
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultPart:
    name: str
    payload: Mapping[str, Any]
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OpaquePart:
    """A wire part of a kind the codec does not model, kept whole for replay."""

    payload: Mapping[str, Any]


Part = TextPart | AttachmentPart | ToolCallPart | ToolResultPart | OpaquePart


@dataclass(frozen=True)
class Turn:
    """One role-tagged entry in a transcript."""

    role: Role
    parts: tuple[Part, ...]

    @classmethod
    def user(cls, text: str | None, attachment: Attachment | None = None) -> Turn:
        parts: list[Part] = []
        if text and text.strip():
            parts.append(TextPart(text))
        if attachment is not None and attachment.data:
            parts.append(AttachmentPart(attachment.mime_type, attachment.data))
        return cls("user", tuple(parts))

    @classmethod
    def model_text(cls, text: str) -> Turn:
        return cls("model", (TextPart(text),))

    @classmethod
    def tool_result(cls, name: str, payload: Mapping[str, Any]) -> Turn:
        return cls("tool-result", (ToolResultPart(name, dict(payload)),))

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))

    def first_tool_call(self) -> ToolCallPart | None:
        for part in self.parts:
            if isinstance(part, ToolCallPart):
                return part
        return None


Transcript = tuple[Turn, ...]


@dataclass(frozen=True)
class ToolDeclaration:
    """Model-facing description of one tool."""

    name: str
    description: str
    parameters: Mapping[str, Any]


@dataclass(frozen=True)
class FinalText:
    text: str
    turn: Turn | None = None

    @property
    def model_turn(self) -> Turn:
        return self.turn if self.turn is not None else Turn.model_text(self.text)


@dataclass(frozen=True)
class ToolCallRequested:
    model_turn: Turn
    name: str
    arguments: Mapping[str, Any]


@dataclass(frozen=True)
class Blocked:
    reason: str


CompletionResult = FinalText | ToolCallRequested | Blocked


class TurnState(StrEnum):
    AWAITING_USER_INPUT = "awaiting_user_input"
    MODEL_PENDING = "model_pending"
    TOOL_PENDING = "tool_pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one user turn."""

    session_id: str
    state: TurnState
    text: str
    transcript: Transcript
    rounds: int = 0
    error: TurnFailedError | None = None

    @property
    def ok(self) -> bool:
        return self.state is TurnState.COMPLETED
