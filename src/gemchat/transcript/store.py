"""In-memory transcript store."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from loguru import logger

from gemchat.core.types import Transcript, Turn


class TranscriptStore:
    """Per-session append-only transcripts, each guarded by its own lock.

    The store itself never awaits, so every method is atomic with respect to the
    event loop. Callers that read, extend and write back a transcript across
    suspension points must hold ``lock(session_id)`` for the whole sequence.
    """

    def __init__(self) -> None:
        self._transcripts: dict[str, Transcript] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._transcripts

    def sessions(self) -> list[str]:
        return sorted(self._transcripts)

    def lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def get(self, session_id: str) -> Transcript:
        return self._transcripts.get(session_id, ())

    def append(self, session_id: str, turns: Iterable[Turn]) -> None:
        new_turns = tuple(turns)
        if not new_turns:
            return
        self._transcripts[session_id] = (*self.get(session_id), *new_turns)
        logger.debug(
            "transcript.append session={} added={} total={}",
            session_id,
            len(new_turns),
            len(self._transcripts[session_id]),
        )

    def clear(self, session_id: str) -> None:
        removed = self._transcripts.pop(session_id, ())
        logger.info("transcript.clear session={} removed={}", session_id, len(removed))
