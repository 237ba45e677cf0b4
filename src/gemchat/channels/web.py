"""Web chat adapter: a small Starlette app in front of the runtime."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from gemchat.app.runtime import AppRuntime
from gemchat.channels.base import BaseChannel
from gemchat.core.types import Attachment
from gemchat.errors import EmptyInputError
from gemchat.llm.codec import decode_turn, encode_turn

API_PREFIX = "/api"


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_id: str | None = Field(default=None, validation_alias=AliasChoices("sessionId", "session_id"))
    text: str | None = Field(default=None, validation_alias=AliasChoices("prompt", "text"))
    image_data: str | None = Field(default=None, validation_alias=AliasChoices("imageData", "image_data"))
    mime_type: str | None = Field(default=None, validation_alias=AliasChoices("mimeType", "mime_type"))
    history: list[dict[str, Any]] | None = None

    @property
    def attachment(self) -> Attachment | None:
        if not self.image_data or not self.mime_type:
            return None
        return Attachment(mime_type=self.mime_type, data=self.image_data)


class ResetRequest(BaseModel):
    session_id: str = Field(validation_alias=AliasChoices("sessionId", "session_id"))


async def _read_json(request: Request) -> object:
    try:
        return await request.json()
    except ValueError:
        # Malformed JSON or a body that is not UTF-8.
        return None


def create_web_app(runtime: AppRuntime, *, allowed_origins: list[str] | None = None) -> Starlette:
    """Build the web chat application bound to one runtime."""

    async def chat_endpoint(request: Request) -> JSONResponse:
        """POST /api/chat: run one user turn."""
        body = await _read_json(request)
        if not isinstance(body, dict):
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)
        try:
            chat = ChatRequest.model_validate(body)
        except ValidationError as exc:
            return JSONResponse({"error": f"Invalid request body: {exc.errors()[0]['msg']}"}, status_code=400)

        try:
            if chat.session_id is None:
                history = [decode_turn(item) for item in chat.history or []]
                reply = await runtime.handle_stateless(history, chat.text, chat.attachment)
            else:
                reply = await runtime.handle_input(chat.session_id, chat.text, chat.attachment)
        except EmptyInputError as exc:
            return JSONResponse({"error": str(exc), "kind": exc.kind}, status_code=400)
        except Exception as exc:
            logger.exception("web.chat.error")
            return JSONResponse({"error": f"Server error: {exc!s}"}, status_code=500)

        if reply.session_id is None:
            # Stateless callers keep the history themselves, as Gemini contents.
            extra: dict[str, Any] = {"updatedHistory": [encode_turn(turn) for turn in reply.transcript]}
        else:
            extra = {"sessionId": reply.session_id}
        if not reply.ok:
            return JSONResponse({"error": reply.text, "kind": reply.error_kind, **extra}, status_code=502)
        return JSONResponse({"response": reply.text, **extra})

    async def reset_endpoint(request: Request) -> JSONResponse:
        """POST /api/chat/reset: forget a session's transcript."""
        body = await _read_json(request)
        if not isinstance(body, dict):
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)
        try:
            reset = ResetRequest.model_validate(body)
        except ValidationError:
            return JSONResponse({"error": "sessionId is required"}, status_code=400)
        await runtime.reset_session(reset.session_id)
        return JSONResponse({"sessionId": reset.session_id, "cleared": True})

    async def health_endpoint(_request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "tools": runtime.registry.names()})

    @asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        logger.info("web.channel.start tools={}", len(runtime.registry.names()))
        yield
        logger.info("web.channel.stopped")

    routes = [
        Route(f"{API_PREFIX}/chat", chat_endpoint, methods=["POST"]),
        Route(f"{API_PREFIX}/chat/reset", reset_endpoint, methods=["POST"]),
        Route(f"{API_PREFIX}/health", health_endpoint, methods=["GET"]),
    ]
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=allowed_origins or ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )
    ]
    return Starlette(routes=routes, middleware=middleware, lifespan=lifespan)


class WebChannel(BaseChannel):
    """Serve the web chat app with uvicorn inside the running event loop."""

    name = "web"

    def __init__(
        self,
        runtime: AppRuntime,
        *,
        host: str,
        port: int,
        allowed_origins: list[str] | None = None,
    ) -> None:
        super().__init__(runtime)
        self.app = create_web_app(runtime, allowed_origins=allowed_origins)
        self._server = uvicorn.Server(uvicorn.Config(self.app, host=host, port=port, log_level="info"))

    async def start(self) -> None:
        logger.info("web.channel.serve host={} port={}", self._server.config.host, self._server.config.port)
        await self._server.serve()

    async def stop(self) -> None:
        self._server.should_exit = True
