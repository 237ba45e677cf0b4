"""Gemini wire format for transcripts and tool declarations."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from gemchat.core.types import (
    AttachmentPart,
    OpaquePart,
    Part,
    Role,
    TextPart,
    ToolCallPart,
    ToolDeclaration,
    ToolResultPart,
    Turn,
)

_KNOWN_PART_KEYS = frozenset({"text", "inlineData", "functionCall", "functionResponse"})


def encode_part(part: Part) -> dict[str, Any]:
    if isinstance(part, OpaquePart):
        return dict(part.payload)
    payload: dict[str, Any] = dict(part.extra)
    if isinstance(part, TextPart):
        payload["text"] = part.text
    elif isinstance(part, AttachmentPart):
        payload["inlineData"] = {"mimeType": part.mime_type, "data": part.data}
    elif isinstance(part, ToolCallPart):
        payload["functionCall"] = {"name": part.name, "args": dict(part.arguments)}
    elif isinstance(part, ToolResultPart):
        payload["functionResponse"] = {"name": part.name, "response": dict(part.payload)}
    else:
        raise TypeError(f"unsupported part: {part!r}")
    return payload


def encode_turn(turn: Turn) -> dict[str, Any]:
    # Function responses travel with the user role.
    role = "model" if turn.role == "model" else "user"
    return {"role": role, "parts": [encode_part(part) for part in turn.parts]}


def encode_declaration(declaration: ToolDeclaration) -> dict[str, Any]:
    return {
        "name": declaration.name,
        "description": declaration.description,
        "parameters": dict(declaration.parameters),
    }


def build_request(
    transcript: Sequence[Turn],
    declarations: Iterable[ToolDeclaration],
    *,
    system_prompt: str = "",
) -> dict[str, Any]:
    body: dict[str, Any] = {"contents": [encode_turn(turn) for turn in transcript]}
    function_declarations = [encode_declaration(item) for item in declarations]
    if function_declarations:
        body["tools"] = [{"functionDeclarations": function_declarations}]
    if system_prompt.strip():
        body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
    return body


def decode_part(payload: Mapping[str, Any]) -> Part:
    extra = {key: value for key, value in payload.items() if key not in _KNOWN_PART_KEYS}
    if isinstance(call := payload.get("functionCall"), Mapping):
        return ToolCallPart(str(call.get("name", "")), dict(call.get("args") or {}), extra)
    if isinstance(response := payload.get("functionResponse"), Mapping):
        return ToolResultPart(str(response.get("name", "")), dict(response.get("response") or {}), extra)
    if isinstance(inline := payload.get("inlineData"), Mapping):
        return AttachmentPart(str(inline.get("mimeType", "")), str(inline.get("data", "")), extra)
    if isinstance(text := payload.get("text"), str):
        return TextPart(text, extra)
    # executableCode, codeExecutionResult, fileData and future kinds replay as-is.
    return OpaquePart(dict(payload))


def decode_turn(content: Mapping[str, Any]) -> Turn:
    raw_parts = content.get("parts") or []
    parts = tuple(decode_part(raw) for raw in raw_parts if isinstance(raw, Mapping))
    role: Role
    if content.get("role") == "model":
        role = "model"
    elif parts and all(isinstance(part, ToolResultPart) for part in parts):
        role = "tool-result"
    else:
        role = "user"
    return Turn(role, parts)
