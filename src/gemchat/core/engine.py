"""Multi-turn tool-calling orchestration engine."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from gemchat.core.types import (
    Attachment,
    Blocked,
    CompletionResult,
    FinalText,
    ToolCallRequested,
    ToolDeclaration,
    Transcript,
    Turn,
    TurnResult,
    TurnState,
)
from gemchat.errors import (
    CompletionBlockedError,
    CompletionTransportError,
    EmptyInputError,
    ToolError,
    ToolInvocationError,
    ToolLoopExceededError,
    TurnFailedError,
)
from gemchat.llm.client import CompletionClient
from gemchat.logging_utils import session_scope
from gemchat.tools.registry import ToolContext, ToolRegistry
from gemchat.transcript.store import TranscriptStore

DEFAULT_MAX_TOOL_ROUNDS = 5
DEFAULT_TOOL_TIMEOUT_SECONDS = 30.0


@dataclass
class _WorkingTurn:
    session_id: str
    stored: Transcript
    working: list[Turn]
    attachment: Attachment | None
    state: TurnState = TurnState.AWAITING_USER_INPUT
    rounds: int = 0

    def enter(self, state: TurnState) -> None:
        self.state = state

    @property
    def transcript(self) -> Transcript:
        return tuple(self.working)

    @property
    def new_turns(self) -> Transcript:
        return tuple(self.working[len(self.stored) :])


class Orchestrator:
    """Drives one user turn through model and tool rounds against a session transcript."""

    def __init__(
        self,
        *,
        store: TranscriptStore,
        registry: ToolRegistry,
        client: CompletionClient,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
        tool_timeout_seconds: float = DEFAULT_TOOL_TIMEOUT_SECONDS,
    ) -> None:
        self._store = store
        self._registry = registry
        self._client = client
        self._max_tool_rounds = max_tool_rounds
        self._tool_timeout_seconds = tool_timeout_seconds

    async def run_turn(self, session_id: str, text: str | None, attachment: Attachment | None = None) -> TurnResult:
        """Run one user turn against the stored transcript of ``session_id``.

        The session lock is held for the whole turn. Only a completed turn is
        appended to the store; a failed one leaves it exactly as it was.
        """
        user_turn = self._user_turn(text, attachment)
        with session_scope(session_id):
            async with self._store.lock(session_id):
                stored = self._store.get(session_id)
                result = await self._execute(session_id, stored, user_turn, attachment)
                if result.ok:
                    self._store.append(session_id, result.transcript[len(stored) :])
                return result

    async def run_detached(
        self,
        history: Sequence[Turn],
        text: str | None,
        attachment: Attachment | None = None,
        *,
        label: str = "detached",
    ) -> TurnResult:
        """Run one user turn on a caller-held transcript without touching the store."""
        user_turn = self._user_turn(text, attachment)
        with session_scope(label):
            return await self._execute(label, tuple(history), user_turn, attachment)

    @staticmethod
    def _user_turn(text: str | None, attachment: Attachment | None) -> Turn:
        user_turn = Turn.user(text, attachment)
        if not user_turn.parts:
            raise EmptyInputError()
        return user_turn

    async def _execute(
        self,
        session_id: str,
        stored: Transcript,
        user_turn: Turn,
        attachment: Attachment | None,
    ) -> TurnResult:
        turn = _WorkingTurn(
            session_id=session_id,
            stored=stored,
            working=[*stored, user_turn],
            attachment=attachment,
        )
        logger.info("engine.turn.start session={} history={}", session_id, len(stored))
        try:
            final_text = await self._drive(turn)
        except TurnFailedError as exc:
            turn.enter(TurnState.FAILED)
            logger.warning(
                "engine.turn.failed session={} kind={} rounds={} error={}",
                session_id,
                exc.kind,
                turn.rounds,
                exc,
            )
            return TurnResult(
                session_id=session_id,
                state=TurnState.FAILED,
                text=exc.user_message,
                transcript=stored,
                rounds=turn.rounds,
                error=exc,
            )

        turn.enter(TurnState.COMPLETED)
        logger.info(
            "engine.turn.completed session={} rounds={} added={}",
            session_id,
            turn.rounds,
            len(turn.new_turns),
        )
        return TurnResult(
            session_id=session_id,
            state=TurnState.COMPLETED,
            text=final_text,
            transcript=turn.transcript,
            rounds=turn.rounds,
        )

    async def _drive(self, turn: _WorkingTurn) -> str:
        declarations = self._registry.declarations()
        while True:
            turn.enter(TurnState.MODEL_PENDING)
            result = await self._complete(turn.transcript, declarations)

            if isinstance(result, FinalText):
                turn.working.append(result.model_turn)
                return result.text

            if isinstance(result, Blocked):
                raise CompletionBlockedError(result.reason)

            if isinstance(result, ToolCallRequested):
                if turn.rounds >= self._max_tool_rounds:
                    raise ToolLoopExceededError(self._max_tool_rounds)
                turn.rounds += 1
                turn.enter(TurnState.TOOL_PENDING)
                turn.working.append(result.model_turn)
                payload = await self._run_tool(turn, result.name, result.arguments)
                turn.working.append(Turn.tool_result(result.name, payload))
                continue

            raise CompletionTransportError(f"unexpected completion result: {result!r}")

    async def _complete(self, transcript: Transcript, declarations: list[ToolDeclaration]) -> CompletionResult:
        try:
            return await self._client.complete(transcript, declarations)
        except TurnFailedError:
            raise
        except Exception as exc:
            logger.exception("engine.completion.error")
            raise CompletionTransportError(f"completion call failed: {exc!s}") from exc

    async def _run_tool(self, turn: _WorkingTurn, name: str, arguments: Mapping[str, Any]) -> dict[str, Any]:
        logger.info("engine.tool.dispatch session={} round={} name={}", turn.session_id, turn.rounds, name)
        context = ToolContext(session_id=turn.session_id, attachment=turn.attachment)
        try:
            descriptor = self._registry.resolve(name)
            async with asyncio.timeout(self._tool_timeout_seconds):
                return await descriptor.invoke(arguments, context)
        except ToolError as exc:
            logger.warning("engine.tool.error session={} name={} kind={}", turn.session_id, name, exc.kind)
            return exc.to_payload()
        except TimeoutError:
            error = ToolInvocationError(name, f"tool {name} timed out after {self._tool_timeout_seconds}s")
            logger.warning("engine.tool.timeout session={} name={}", turn.session_id, name)
            return error.to_payload()
        except Exception as exc:
            logger.warning("engine.tool.error session={} name={} error={!r}", turn.session_id, name, exc)
            return ToolInvocationError(name, f"{type(exc).__name__}: {exc!s}").to_payload()
