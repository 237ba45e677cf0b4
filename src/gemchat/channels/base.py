"""Base channel interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from gemchat.app.runtime import AppRuntime


class BaseChannel(ABC):
    """Abstract base class for channel adapters."""

    name: str = "base"

    def __init__(self, runtime: AppRuntime) -> None:
        self.runtime = runtime

    @abstractmethod
    async def start(self) -> None:
        """Start serving inbound messages until stopped."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the channel and release its transport resources."""

    def session_id_for(self, chat_id: str) -> str:
        return f"{self.name}:{chat_id}"
