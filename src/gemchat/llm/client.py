"""Completion client for the Gemini generateContent API."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import httpx
from loguru import logger

from gemchat.core.types import Blocked, CompletionResult, FinalText, ToolCallRequested, ToolDeclaration, Turn
from gemchat.errors import CompletionTransportError
from gemchat.llm.codec import build_request, decode_turn

BLOCKING_FINISH_REASONS = frozenset({"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"})
MAX_ERROR_BODY_CHARS = 200


class CompletionClient(Protocol):
    async def complete(self, transcript: Sequence[Turn], declarations: Sequence[ToolDeclaration]) -> CompletionResult:
        """Run one request/response exchange with the completion service."""
        ...


class GeminiClient:
    """One request, one classified response; retries are left to callers."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        api_base: str,
        timeout_seconds: float,
        system_prompt: str = "",
        http_client: httpx.AsyncClient,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._endpoint = f"{api_base.rstrip('/')}/models/{model}:generateContent"
        self._timeout_seconds = timeout_seconds
        self._system_prompt = system_prompt
        self._http = http_client

    async def complete(self, transcript: Sequence[Turn], declarations: Sequence[ToolDeclaration]) -> CompletionResult:
        body = build_request(transcript, declarations, system_prompt=self._system_prompt)
        logger.info("completion.request model={} contents={}", self._model, len(body["contents"]))
        data = await self._post(body)
        result = classify_response(data)
        logger.info("completion.response model={} result={}", self._model, type(result).__name__)
        return result

    async def _post(self, body: dict[str, Any]) -> Mapping[str, Any]:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                response = await self._http.post(
                    self._endpoint,
                    json=body,
                    headers={"x-goog-api-key": self._api_key},
                )
        except TimeoutError as exc:
            raise CompletionTransportError(f"no response within {self._timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            raise CompletionTransportError(f"request failed: {exc!s}") from exc

        if response.is_error:
            snippet = response.text[:MAX_ERROR_BODY_CHARS]
            logger.error("completion.http.error status={} body={}", response.status_code, snippet)
            raise CompletionTransportError(
                f"Gemini API error: {response.status_code} - {snippet}",
                status_code=response.status_code,
                body=snippet,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise CompletionTransportError("invalid JSON in completion response") from exc
        if not isinstance(data, Mapping):
            raise CompletionTransportError("unexpected completion response shape")
        return data


def classify_response(data: Mapping[str, Any]) -> CompletionResult:
    """Map one generateContent response onto exactly one completion result."""
    candidates = data.get("candidates") or []
    candidate = candidates[0] if candidates and isinstance(candidates[0], Mapping) else None
    content = candidate.get("content") if candidate is not None else None

    if isinstance(content, Mapping):
        turn = decode_turn({**content, "role": "model"})
        if (call := turn.first_tool_call()) is not None:
            return ToolCallRequested(model_turn=turn, name=call.name, arguments=dict(call.arguments))
    else:
        turn = None

    finish_reason = candidate.get("finishReason") if candidate is not None else None
    if turn is not None and turn.text and finish_reason not in BLOCKING_FINISH_REASONS:
        return FinalText(text=turn.text, turn=turn)

    reason = str(finish_reason or "no response candidates")
    feedback = data.get("promptFeedback")
    if isinstance(feedback, Mapping) and feedback.get("blockReason"):
        reason = f"request blocked: {feedback['blockReason']}"
    logger.warning("completion.blocked reason={}", reason)
    return Blocked(reason=reason)
