from __future__ import annotations

import pytest
from pydantic import BaseModel, Field

from gemchat.core.types import Attachment
from gemchat.errors import UnknownToolError
from gemchat.tools.registry import ToolContext, ToolRegistry, schema_from_model


class SearchInput(BaseModel):
    query: str = Field(..., description="Search query")
    limit: int = Field(default=3, description="Result count")
    tags: list[str] = Field(default_factory=list)
    folder: str | None = Field(default=None, description="Folder")


@pytest.mark.asyncio
async def test_registry_logs_once_per_invocation(monkeypatch: pytest.MonkeyPatch) -> None:
    logs: list[str] = []

    def _capture(message: str, *args: object) -> None:
        logs.append(message)

    monkeypatch.setattr("gemchat.tools.registry.logger.info", _capture)
    monkeypatch.setattr("gemchat.tools.registry.logger.exception", _capture)

    registry = ToolRegistry()

    @registry.register(name="search", description="search", input_model=SearchInput)
    async def search(params: SearchInput, _context: ToolContext) -> dict[str, str]:
        return {"query": params.query}

    result = await registry.resolve("search").invoke({"query": "hi"}, ToolContext(session_id="s"))
    assert result == {"query": "hi"}
    assert logs.count("tool.call.start name={} session={} {{ {} }}") == 1
    assert logs.count("tool.call.end name={} duration={:.3f}ms") == 1


@pytest.mark.asyncio
async def test_registry_logs_error_and_reraises(monkeypatch: pytest.MonkeyPatch) -> None:
    errors: list[str] = []
    monkeypatch.setattr("gemchat.tools.registry.logger.exception", lambda message, *args: errors.append(message))

    registry = ToolRegistry()

    @registry.register(name="broken", description="broken", input_model=SearchInput)
    async def broken(params: SearchInput, _context: ToolContext) -> dict[str, str]:
        raise RuntimeError("down")

    with pytest.raises(RuntimeError, match="down"):
        await registry.resolve("broken").invoke({"query": "x"}, ToolContext(session_id="s"))
    assert errors == ["tool.call.error name={}"]


@pytest.mark.asyncio
async def test_non_mapping_results_are_wrapped() -> None:
    registry = ToolRegistry()

    @registry.register(name="count", description="count", input_model=SearchInput)
    def count(params: SearchInput, _context: ToolContext) -> int:
        return params.limit

    result = await registry.resolve("count").invoke({"query": "x", "limit": 7}, ToolContext(session_id="s"))
    assert result == {"result": 7}


@pytest.mark.asyncio
async def test_context_carries_attachment() -> None:
    registry = ToolRegistry()

    @registry.register(name="peek", description="peek", input_model=SearchInput)
    async def peek(params: SearchInput, context: ToolContext) -> dict[str, str | None]:
        return {"mime": context.attachment.mime_type if context.attachment else None}

    context = ToolContext(session_id="s", attachment=Attachment(mime_type="image/png", data="AA=="))
    assert await registry.resolve("peek").invoke({"query": "x"}, context) == {"mime": "image/png"}


def test_resolve_unknown_tool_raises() -> None:
    registry = ToolRegistry()
    assert registry.get("nope") is None
    with pytest.raises(UnknownToolError) as excinfo:
        registry.resolve("nope")
    assert excinfo.value.to_payload() == {"error": "UnknownTool", "message": "function nope is not known"}


def test_duplicate_tool_name_raises() -> None:
    registry = ToolRegistry()
    registry.register(name="a", description="a", input_model=SearchInput)(lambda params, context: {})

    with pytest.raises(ValueError, match="Duplicate tool name"):
        registry.register(name="a", description="again", input_model=SearchInput)(lambda params, context: {})


def test_declarations_keep_registration_order() -> None:
    registry = ToolRegistry()
    for name in ("zeta", "alpha", "mid"):
        registry.register(name=name, description=name, input_model=SearchInput)(lambda params, context: {})

    assert [item.name for item in registry.declarations()] == ["zeta", "alpha", "mid"]
    assert registry.names() == ["zeta", "alpha", "mid"]


def test_schema_from_model_uses_service_types() -> None:
    schema = schema_from_model(SearchInput)

    assert schema["type"] == "OBJECT"
    assert schema["required"] == ["query"]
    assert schema["properties"]["query"] == {"type": "STRING", "description": "Search query"}
    assert schema["properties"]["limit"] == {"type": "INTEGER", "description": "Result count"}
    assert schema["properties"]["tags"] == {"type": "ARRAY", "items": {"type": "STRING"}}
    assert schema["properties"]["folder"] == {"type": "STRING", "description": "Folder"}
