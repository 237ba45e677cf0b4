"""Application-level exception types for gemchat."""

from __future__ import annotations

from typing import Any, ClassVar


class GemchatError(Exception):
    """Base exception for gemchat."""

    kind: ClassVar[str] = "Error"


class ConfigurationError(GemchatError):
    """Base exception for configuration and startup validation errors."""

    kind = "ConfigurationError"


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when an API key is required but missing."""


class EmptyInputError(GemchatError):
    """Raised when a user turn carries neither text nor an attachment."""

    kind = "EmptyInput"

    def __init__(self, message: str = "prompt or attachment must not be empty") -> None:
        super().__init__(message)


class ToolError(GemchatError):
    """Tool failure that is fed back to the model instead of aborting the turn."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class UnknownToolError(ToolError):
    kind = "UnknownTool"

    def __init__(self, name: str) -> None:
        super().__init__(name, f"function {name} is not known")


class ToolInvocationError(ToolError):
    kind = "ToolInvocationError"


class TurnFailedError(GemchatError):
    """Base exception for errors that abort the current user turn."""

    @property
    def user_message(self) -> str:
        return f"Sorry, something went wrong: {self}. Please try again later."


class CompletionTransportError(TurnFailedError):
    """Network or HTTP failure talking to the completion service."""

    kind = "CompletionTransportError"

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CompletionBlockedError(TurnFailedError):
    """The completion service declined to answer."""

    kind = "Blocked"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ToolLoopExceededError(TurnFailedError):
    kind = "ToolLoopExceeded"

    def __init__(self, max_rounds: int) -> None:
        super().__init__(f"tool call limit of {max_rounds} rounds exceeded")
        self.max_rounds = max_rounds
