"""Channel manager."""

from __future__ import annotations

import asyncio

from loguru import logger

from gemchat.channels.base import BaseChannel


class ChannelManager:
    """Run several channel adapters side by side on one runtime."""

    def __init__(self) -> None:
        self._channels: dict[str, BaseChannel] = {}
        self._tasks: list[asyncio.Task[None]] = []

    def register(self, channel: BaseChannel) -> None:
        self._channels[channel.name] = channel

    async def run(self) -> None:
        """Start every channel and wait until the first one exits."""
        if not self._channels:
            raise RuntimeError("no channels registered")
        self._tasks = [asyncio.create_task(channel.start(), name=name) for name, channel in self._channels.items()]
        logger.info("channels.start enabled={}", ",".join(self._channels))
        try:
            done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if (exc := task.exception()) is not None:
                    raise exc
        finally:
            await self.stop()

    async def stop(self) -> None:
        for channel in self._channels.values():
            try:
                await channel.stop()
            except Exception:
                logger.exception("channels.stop.error channel={}", channel.name)
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                continue
            except Exception:
                logger.exception("channels.task.error channel={}", task.get_name())
        self._tasks.clear()
