"""Application runtime and session management."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from types import TracebackType

import httpx
from loguru import logger

from gemchat.config import Settings
from gemchat.core.engine import Orchestrator
from gemchat.core.types import Attachment, Transcript, Turn, TurnResult
from gemchat.errors import ApiKeyNotConfiguredError
from gemchat.llm.client import CompletionClient, GeminiClient
from gemchat.tools.builtin import register_builtin_tools
from gemchat.tools.registry import ToolRegistry
from gemchat.transcript.store import TranscriptStore

RESET_COMMANDS = frozenset({"/clear", "/reset"})
RESET_REPLY = "Conversation history has been cleared."


def is_reset_command(text: str | None) -> bool:
    return text is not None and text.strip().casefold() in RESET_COMMANDS


@dataclass(frozen=True)
class Reply:
    """Transport-neutral answer for one inbound message."""

    session_id: str | None
    text: str
    ok: bool = True
    error_kind: str | None = None
    turn: TurnResult | None = None

    @property
    def transcript(self) -> Transcript:
        return self.turn.transcript if self.turn is not None else ()


class AppRuntime:
    """Global runtime shared by every channel adapter."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: CompletionClient | None = None,
        registry: ToolRegistry | None = None,
        store: TranscriptStore | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self._http = http or httpx.AsyncClient(timeout=settings.tool_timeout_seconds)
        self.store = store or TranscriptStore()
        if registry is None:
            registry = ToolRegistry()
            register_builtin_tools(registry, settings=settings, http=self._http)
        self.registry = registry
        self._client = client or self._build_client(settings)
        self.engine = Orchestrator(
            store=self.store,
            registry=self.registry,
            client=self._client,
            max_tool_rounds=settings.max_tool_rounds,
            tool_timeout_seconds=settings.tool_timeout_seconds,
        )

    def _build_client(self, settings: Settings) -> GeminiClient:
        if not settings.gemini_api_key:
            raise ApiKeyNotConfiguredError("GEMINI_API_KEY is not configured")
        return GeminiClient(
            api_key=settings.gemini_api_key,
            model=settings.model,
            api_base=settings.api_base,
            timeout_seconds=settings.completion_timeout_seconds,
            system_prompt=settings.system_prompt,
            http_client=self._http,
        )

    async def __aenter__(self) -> AppRuntime:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def reset_session(self, session_id: str) -> None:
        async with self.store.lock(session_id):
            self.store.clear(session_id)

    async def handle_input(
        self,
        session_id: str,
        text: str | None,
        attachment: Attachment | None = None,
    ) -> Reply:
        """Route one inbound message: reset command or a full orchestrated turn.

        Raises ``EmptyInputError`` when neither text nor attachment is present.
        """
        if is_reset_command(text) and attachment is None:
            await self.reset_session(session_id)
            return Reply(session_id=session_id, text=RESET_REPLY)

        return self._reply(session_id, await self.engine.run_turn(session_id, text, attachment))

    async def handle_stateless(
        self,
        history: Sequence[Turn],
        text: str | None,
        attachment: Attachment | None = None,
    ) -> Reply:
        """Run one turn on a client-held history; nothing is kept server side.

        A reset command returns an empty transcript for the client to adopt.
        """
        if is_reset_command(text) and attachment is None:
            return Reply(session_id=None, text=RESET_REPLY)

        return self._reply(None, await self.engine.run_detached(history, text, attachment, label="web:stateless"))

    @staticmethod
    def _reply(session_id: str | None, result: TurnResult) -> Reply:
        if result.ok:
            return Reply(session_id=session_id, text=result.text, turn=result)

        error_kind = result.error.kind if result.error is not None else None
        logger.info("runtime.turn.failed session={} kind={}", result.session_id, error_kind)
        return Reply(session_id=session_id, text=result.text, ok=False, error_kind=error_kind, turn=result)
