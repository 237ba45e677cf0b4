"""Unified tool registry."""

from __future__ import annotations

import inspect
import json
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import BaseModel

from gemchat.core.types import Attachment, ToolDeclaration
from gemchat.errors import UnknownToolError

ToolHandler = Callable[[Any, "ToolContext"], Awaitable[Any]]

_JSON_TO_SCHEMA_TYPE = {
    "object": "OBJECT",
    "string": "STRING",
    "integer": "INTEGER",
    "number": "NUMBER",
    "boolean": "BOOLEAN",
    "array": "ARRAY",
}


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed."""
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


@dataclass(frozen=True)
class ToolContext:
    """Out-of-band data a tool may need beyond its model-provided arguments."""

    session_id: str
    attachment: Attachment | None = None


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool metadata and runtime handle."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    @property
    def declaration(self) -> ToolDeclaration:
        return ToolDeclaration(
            name=self.name,
            description=self.description,
            parameters=schema_from_model(self.input_model),
        )

    async def invoke(self, arguments: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
        params = self.input_model.model_validate(dict(arguments))
        result = self.handler(params, context)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, Mapping):
            return dict(result)
        return {"result": result}


class ToolRegistry:
    """Read-only mapping from tool name to declaration and handler once configured."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    def register(
        self,
        *,
        name: str,
        description: str,
        input_model: type[BaseModel],
    ) -> Callable[[ToolHandler], ToolHandler]:
        def decorator(handler: ToolHandler) -> ToolHandler:
            if name in self._tools:
                raise ValueError(f"Duplicate tool name: {name}")
            self._tools[name] = ToolDescriptor(
                name=name,
                description=description,
                input_model=input_model,
                handler=self._wrap_handler(name, handler),
            )
            return handler

        return decorator

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def resolve(self, name: str) -> ToolDescriptor:
        descriptor = self.get(name)
        if descriptor is None:
            raise UnknownToolError(name)
        return descriptor

    def names(self) -> list[str]:
        return list(self._tools)

    def declarations(self) -> list[ToolDeclaration]:
        return [descriptor.declaration for descriptor in self._tools.values()]

    def _log_tool_call(self, name: str, params: BaseModel, context: ToolContext) -> None:
        rendered_params: list[str] = []
        for key, value in params.model_dump(exclude_none=True).items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            value = _shorten_text(rendered, width=30, placeholder="...")
            if value.startswith('"') and not value.endswith('"'):
                value = value + '"'
            rendered_params.append(f"{key}={value}")
        logger.info(
            "tool.call.start name={} session={} {{ {} }}",
            name,
            context.session_id,
            ", ".join(rendered_params),
        )

    def _wrap_handler(self, name: str, handler: ToolHandler) -> ToolHandler:
        async def _handler(params: Any, context: ToolContext) -> Any:
            self._log_tool_call(name, params, context)
            start = time.monotonic()
            try:
                result = handler(params, context)
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception:
                logger.exception("tool.call.error name={}", name)
                raise
            finally:
                duration = time.monotonic() - start
                logger.info("tool.call.end name={} duration={:.3f}ms", name, duration * 1000)

        return _handler


def schema_from_model(model: type[BaseModel]) -> dict[str, Any]:
    """Convert a pydantic model into the OpenAPI-subset schema the model service accepts."""
    json_schema = model.model_json_schema()
    return _convert_schema(json_schema, json_schema.get("$defs", {}))


def _convert_schema(node: Mapping[str, Any], defs: Mapping[str, Any]) -> dict[str, Any]:
    if "$ref" in node:
        return _convert_schema(defs[node["$ref"].rsplit("/", 1)[-1]], defs)

    # Optional fields arrive as anyOf [<type>, null].
    if "anyOf" in node:
        options = [option for option in node["anyOf"] if option.get("type") != "null"]
        converted = _convert_schema(options[0], defs) if options else {"type": "STRING"}
        if "description" in node:
            converted["description"] = node["description"]
        return converted

    schema: dict[str, Any] = {"type": _JSON_TO_SCHEMA_TYPE.get(node.get("type", "string"), "STRING")}
    if "description" in node:
        schema["description"] = node["description"]
    if "enum" in node:
        schema["enum"] = list(node["enum"])
    if schema["type"] == "ARRAY" and "items" in node:
        schema["items"] = _convert_schema(node["items"], defs)
    if schema["type"] == "OBJECT":
        properties = node.get("properties", {})
        schema["properties"] = {key: _convert_schema(value, defs) for key, value in properties.items()}
        required = list(node.get("required", []))
        if required:
            schema["required"] = required
    return schema
