"""Telegram channel adapter."""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass, field

from loguru import logger
from telegram import Update
from telegram.error import BadRequest
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters
from telegramify_markdown import markdownify as md

from gemchat.app.runtime import AppRuntime
from gemchat.channels.base import BaseChannel
from gemchat.core.types import Attachment
from gemchat.errors import EmptyInputError

MAX_MESSAGE_LENGTH = 4000
START_TEXT = "Hello! I am your Gemini AI assistant. Send me a message to start a conversation."
CLEARED_TEXT = "Conversation history has been cleared."


@dataclass(frozen=True)
class TelegramConfig:
    """Telegram adapter config."""

    token: str
    allow_from: set[str] = field(default_factory=set)


class TelegramChannel(BaseChannel):
    """Telegram adapter using long polling mode."""

    name = "telegram"

    def __init__(self, runtime: AppRuntime, config: TelegramConfig) -> None:
        super().__init__(runtime)
        self._config = config
        self._app: Application | None = None
        self._running = False
        self._typing_tasks: dict[str, asyncio.Task[None]] = {}

    async def start(self) -> None:
        if not self._config.token:
            raise RuntimeError("telegram token is empty")
        logger.info("telegram.channel.start allow_from_count={}", len(self._config.allow_from))
        self._running = True
        self._app = Application.builder().token(self._config.token).build()
        self._app.add_handler(CommandHandler("start", self._on_start))
        self._app.add_handler(CommandHandler("help", self._on_help))
        self._app.add_handler(CommandHandler(["clear", "reset"], self._on_clear))
        self._app.add_handler(
            MessageHandler((filters.TEXT & ~filters.COMMAND) | filters.PHOTO, self._on_message, block=False)
        )
        self._app.add_error_handler(self._on_error)
        await self._app.initialize()
        await self._app.start()
        updater = self._app.updater
        if updater is None:
            return
        await updater.start_polling(drop_pending_updates=True, allowed_updates=["message"])
        logger.info("telegram.channel.polling")
        while self._running:
            await asyncio.sleep(0.5)

    async def stop(self) -> None:
        self._running = False
        for task in self._typing_tasks.values():
            task.cancel()
        self._typing_tasks.clear()
        if self._app is None:
            return
        updater = self._app.updater
        if updater is not None and updater.running:
            await updater.stop()
        await self._app.stop()
        await self._app.shutdown()
        self._app = None
        logger.info("telegram.channel.stopped")

    async def send(self, chat_id: str, content: str, *, reply_to_message_id: int | None = None) -> None:
        if self._app is None:
            return
        self._stop_typing(chat_id)

        text = md(content)
        if len(text) > MAX_MESSAGE_LENGTH:
            # Long answers go out as plain text chunks.
            for start in range(0, len(content), MAX_MESSAGE_LENGTH):
                await self._send_plain(chat_id, content[start : start + MAX_MESSAGE_LENGTH], reply_to_message_id)
            return

        try:
            await self._app.bot.send_message(
                chat_id=int(chat_id),
                text=text,
                parse_mode="MarkdownV2",
                reply_to_message_id=reply_to_message_id,
            )
        except BadRequest as exc:
            logger.warning("telegram.channel.markdown_rejected chat_id={} error={}", chat_id, exc)
            await self._send_plain(chat_id, content, reply_to_message_id)

    async def _send_plain(self, chat_id: str, content: str, reply_to_message_id: int | None) -> None:
        if self._app is None:
            return
        await self._app.bot.send_message(
            chat_id=int(chat_id),
            text=content,
            parse_mode=None,
            reply_to_message_id=reply_to_message_id,
        )

    def _is_allowed(self, update: Update) -> bool:
        user = update.effective_user
        if not self._config.allow_from:
            return True
        if user is None:
            return False
        sender_tokens = {str(user.id)}
        if user.username:
            sender_tokens.add(user.username)
        return not sender_tokens.isdisjoint(self._config.allow_from)

    async def _on_start(self, update: Update, _context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message is None:
            return
        await update.message.reply_text(START_TEXT)

    async def _on_help(self, update: Update, _context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message is None:
            return
        await update.message.reply_text(
            "Commands:\n"
            "/start - show startup message\n"
            "/clear - forget this conversation\n"
            "/help - show this help\n\n"
            "Plain text and photos are sent to the assistant."
        )

    async def _on_clear(self, update: Update, _context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message is None or not self._is_allowed(update):
            return
        chat_id = str(update.message.chat_id)
        await self.runtime.reset_session(self.session_id_for(chat_id))
        await update.message.reply_text(CLEARED_TEXT)

    async def _on_message(self, update: Update, _context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.message
        if message is None:
            return
        if not self._is_allowed(update):
            await message.reply_text("Access denied.")
            return

        chat_id = str(message.chat_id)
        text = message.text or message.caption or ""
        attachment = await self._photo_attachment(update)
        logger.info(
            "telegram.channel.inbound chat_id={} has_photo={} content={}",
            chat_id,
            attachment is not None,
            text[:100],
        )

        self._start_typing(chat_id)
        try:
            reply = await self.runtime.handle_input(self.session_id_for(chat_id), text, attachment)
        except EmptyInputError:
            return
        except Exception as exc:
            logger.exception("telegram.channel.turn.error chat_id={}", chat_id)
            await self._send_plain(chat_id, f"Sorry, something went wrong: {exc!s}", None)
            return
        finally:
            self._stop_typing(chat_id)

        await self.send(chat_id, reply.text)

    @staticmethod
    async def _photo_attachment(update: Update) -> Attachment | None:
        message = update.message
        if message is None or not message.photo:
            return None
        # Telegram lists photo sizes smallest first.
        photo_file = await message.photo[-1].get_file()
        raw = await photo_file.download_as_bytearray()
        return Attachment(mime_type="image/jpeg", data=base64.b64encode(bytes(raw)).decode("ascii"))

    async def _on_error(self, _update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error("telegram.channel.polling_error error={!r}", context.error)

    def _start_typing(self, chat_id: str) -> None:
        self._stop_typing(chat_id)
        self._typing_tasks[chat_id] = asyncio.create_task(self._typing_loop(chat_id))

    def _stop_typing(self, chat_id: str) -> None:
        task = self._typing_tasks.pop(chat_id, None)
        if task is not None:
            task.cancel()

    async def _typing_loop(self, chat_id: str) -> None:
        try:
            while self._app is not None:
                await self._app.bot.send_chat_action(chat_id=int(chat_id), action="typing")
                await asyncio.sleep(4)
        except asyncio.CancelledError:
            return
        except Exception:
            logger.exception("telegram.channel.typing_loop.error chat_id={}", chat_id)
            return
