from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import pytest
from pydantic import BaseModel, Field

from gemchat.config import Settings
from gemchat.core.types import (
    CompletionResult,
    FinalText,
    ToolCallPart,
    ToolCallRequested,
    ToolDeclaration,
    Turn,
)
from gemchat.tools.registry import ToolContext, ToolRegistry
from gemchat.transcript.store import TranscriptStore

Step = CompletionResult | Exception | Callable[[Sequence[Turn]], CompletionResult]


class ScriptedClient:
    """Completion client that replays a fixed script and records every request."""

    def __init__(self, steps: Sequence[Step], *, delay: float = 0.0) -> None:
        self._steps = list(steps)
        self._delay = delay
        self.requests: list[tuple[Turn, ...]] = []
        self.declarations: list[list[str]] = []

    async def complete(self, transcript: Sequence[Turn], declarations: Sequence[ToolDeclaration]) -> CompletionResult:
        self.requests.append(tuple(transcript))
        self.declarations.append([item.name for item in declarations])
        if self._delay:
            await asyncio.sleep(self._delay)
        if not self._steps:
            raise AssertionError("completion script exhausted")
        step = self._steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(transcript)
        return step


class AlwaysToolClient:
    """Completion client that asks for a tool on every call."""

    def __init__(self, name: str = "getCurrentWeather") -> None:
        self.name = name
        self.calls = 0

    async def complete(self, transcript: Sequence[Turn], declarations: Sequence[ToolDeclaration]) -> CompletionResult:
        self.calls += 1
        return tool_call(self.name, {"city": f"city-{self.calls}"})


def tool_call(name: str, arguments: dict[str, Any]) -> ToolCallRequested:
    return ToolCallRequested(
        model_turn=Turn("model", (ToolCallPart(name, arguments),)),
        name=name,
        arguments=arguments,
    )


def final(text: str) -> FinalText:
    return FinalText(text=text, turn=Turn.model_text(text))


class CityInput(BaseModel):
    city: str = Field(..., description="City name")


class FolderInput(BaseModel):
    folder: str = Field(..., description="Folder name")


@pytest.fixture
def tool_calls() -> list[tuple[str, dict[str, Any], ToolContext]]:
    return []


@pytest.fixture
def registry(tool_calls: list[tuple[str, dict[str, Any], ToolContext]]) -> ToolRegistry:
    registry = ToolRegistry()

    @registry.register(name="getCurrentWeather", description="Current weather", input_model=CityInput)
    async def weather(params: CityInput, context: ToolContext) -> dict[str, Any]:
        tool_calls.append(("getCurrentWeather", params.model_dump(), context))
        return {"temperature": "30°C", "description": "Clear"}

    @registry.register(name="uploadImageToCloudinary", description="Upload", input_model=FolderInput)
    async def upload(params: FolderInput, context: ToolContext) -> dict[str, Any]:
        tool_calls.append(("uploadImageToCloudinary", params.model_dump(), context))
        if context.attachment is None:
            raise RuntimeError("no image attached")
        return {"success": True, "size": len(context.attachment.data)}

    return registry


@pytest.fixture
def store() -> TranscriptStore:
    return TranscriptStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini_api_key="test-key",
        max_tool_rounds=3,
        tool_timeout_seconds=1,
        completion_timeout_seconds=1,
        _env_file=None,
    )
