from __future__ import annotations

import base64
from types import SimpleNamespace

import pytest
from conftest import ScriptedClient, final
from telegram.error import BadRequest

from gemchat.app.runtime import AppRuntime
from gemchat.channels.telegram import CLEARED_TEXT, TelegramChannel, TelegramConfig
from gemchat.config import Settings
from gemchat.core.types import AttachmentPart, Blocked, Turn
from gemchat.tools.registry import ToolRegistry


class DummyMessage:
    def __init__(self, *, chat_id: int, text: str | None, message_id: int = 1, photo: list | None = None) -> None:
        self.chat_id = chat_id
        self.text = text
        self.caption = None
        self.message_id = message_id
        self.photo = photo or []
        self.replies: list[str] = []

    async def reply_text(self, text: str) -> None:
        self.replies.append(text)


class DummyBot:
    def __init__(self, *, fail_first: bool = False) -> None:
        self.fail_first = fail_first
        self.calls: list[dict[str, object]] = []

    async def send_message(self, **kwargs: object) -> None:
        self.calls.append(kwargs)
        if self.fail_first and len(self.calls) == 1:
            raise BadRequest("Can't parse entities: unmatched end tag")


class DummyPhotoSize:
    def __init__(self, payload: bytes) -> None:
        self._payload = payload

    async def get_file(self) -> SimpleNamespace:
        async def download_as_bytearray() -> bytearray:
            return bytearray(self._payload)

        return SimpleNamespace(download_as_bytearray=download_as_bytearray)


def _update(message: DummyMessage, *, user_id: int = 1, username: str = "tester") -> SimpleNamespace:
    return SimpleNamespace(message=message, effective_user=SimpleNamespace(id=user_id, username=username))


def _channel(
    settings: Settings,
    registry: ToolRegistry,
    client: ScriptedClient,
    *,
    allow_from: set[str] | None = None,
) -> tuple[TelegramChannel, DummyBot]:
    runtime = AppRuntime(settings, client=client, registry=registry)
    channel = TelegramChannel(runtime, TelegramConfig(token="t", allow_from=allow_from or set()))  # noqa: S106
    channel._start_typing = lambda _chat_id: None  # type: ignore[method-assign]
    bot = DummyBot()
    channel._app = SimpleNamespace(bot=bot)  # type: ignore[assignment]
    return channel, bot


@pytest.mark.asyncio
async def test_text_message_runs_turn_and_replies(settings: Settings, registry: ToolRegistry) -> None:
    channel, bot = _channel(settings, registry, ScriptedClient([final("Hello!")]))
    message = DummyMessage(chat_id=42, text="hi")

    await channel._on_message(_update(message), None)  # type: ignore[arg-type]

    assert len(bot.calls) == 1
    assert bot.calls[0]["chat_id"] == 42
    assert bot.calls[0]["parse_mode"] == "MarkdownV2"
    assert [turn.text for turn in channel.runtime.store.get("telegram:42")] == ["hi", "Hello!"]


@pytest.mark.asyncio
async def test_failed_turn_is_reported_to_chat(settings: Settings, registry: ToolRegistry) -> None:
    channel, bot = _channel(settings, registry, ScriptedClient([Blocked("SAFETY")]))

    await channel._on_message(_update(DummyMessage(chat_id=42, text="hi")), None)  # type: ignore[arg-type]

    assert len(bot.calls) == 1
    assert "SAFETY" in str(bot.calls[0]["text"])
    assert channel.runtime.store.get("telegram:42") == ()


@pytest.mark.asyncio
async def test_sender_not_in_allowlist_is_denied(settings: Settings, registry: ToolRegistry) -> None:
    client = ScriptedClient([])
    channel, bot = _channel(settings, registry, client, allow_from={"someone-else"})
    message = DummyMessage(chat_id=42, text="hi")

    await channel._on_message(_update(message), None)  # type: ignore[arg-type]

    assert message.replies == ["Access denied."]
    assert client.requests == []
    assert bot.calls == []


@pytest.mark.asyncio
async def test_allowlist_matches_username(settings: Settings, registry: ToolRegistry) -> None:
    channel, bot = _channel(settings, registry, ScriptedClient([final("ok")]), allow_from={"tester"})

    await channel._on_message(_update(DummyMessage(chat_id=42, text="hi")), None)  # type: ignore[arg-type]

    assert len(bot.calls) == 1


@pytest.mark.asyncio
async def test_photo_message_becomes_attachment(settings: Settings, registry: ToolRegistry) -> None:
    channel, _ = _channel(settings, registry, ScriptedClient([final("A cat.")]))
    message = DummyMessage(
        chat_id=42,
        text=None,
        photo=[DummyPhotoSize(b"small"), DummyPhotoSize(b"large")],
    )
    message.caption = "what is this?"

    await channel._on_message(_update(message), None)  # type: ignore[arg-type]

    user_turn = channel.runtime.store.get("telegram:42")[0]
    assert user_turn.text == "what is this?"
    expected = base64.b64encode(b"large").decode("ascii")
    assert AttachmentPart("image/jpeg", expected) in user_turn.parts


@pytest.mark.asyncio
async def test_clear_command_resets_session(settings: Settings, registry: ToolRegistry) -> None:
    channel, _ = _channel(settings, registry, ScriptedClient([]))
    channel.runtime.store.append("telegram:42", [Turn.user(str(idx)) for idx in range(6)])
    message = DummyMessage(chat_id=42, text="/clear")

    await channel._on_clear(_update(message), None)  # type: ignore[arg-type]

    assert message.replies == [CLEARED_TEXT]
    assert channel.runtime.store.get("telegram:42") == ()


@pytest.mark.asyncio
async def test_send_falls_back_to_plain_text_when_entity_parse_fails(
    settings: Settings, registry: ToolRegistry
) -> None:
    channel, _ = _channel(settings, registry, ScriptedClient([]))
    bot = DummyBot(fail_first=True)
    channel._app = SimpleNamespace(bot=bot)  # type: ignore[assignment]

    await channel.send("123", "a < b", reply_to_message_id=7)

    assert len(bot.calls) == 2
    assert bot.calls[0]["parse_mode"] == "MarkdownV2"
    assert bot.calls[1]["parse_mode"] is None
    assert bot.calls[1]["text"] == "a < b"
    assert bot.calls[1]["reply_to_message_id"] == 7


@pytest.mark.asyncio
async def test_long_message_is_split_into_plain_chunks(settings: Settings, registry: ToolRegistry) -> None:
    channel, bot = _channel(settings, registry, ScriptedClient([]))

    await channel.send("123", "x" * 9000)

    assert [len(str(call["text"])) for call in bot.calls] == [4000, 4000, 1000]
    assert all(call["parse_mode"] is None for call in bot.calls)


@pytest.mark.asyncio
async def test_non_ascii_reply_is_measured_in_characters(settings: Settings, registry: ToolRegistry) -> None:
    channel, bot = _channel(settings, registry, ScriptedClient([]))
    content = "привет мир " * 300

    await channel.send("123", content)

    assert len(content) < 4000 < len(content.encode())
    assert len(bot.calls) == 1
    assert bot.calls[0]["parse_mode"] == "MarkdownV2"
