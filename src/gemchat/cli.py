"""gemchat command line entry points."""

from __future__ import annotations

import asyncio

import typer
from loguru import logger
from rich.console import Console
from rich.markdown import Markdown

from gemchat.app.runtime import AppRuntime, is_reset_command
from gemchat.channels.manager import ChannelManager
from gemchat.channels.telegram import TelegramChannel, TelegramConfig
from gemchat.channels.web import WebChannel
from gemchat.config import Settings
from gemchat.errors import ConfigurationError, EmptyInputError
from gemchat.logging_utils import configure_logging

app = typer.Typer(
    name="gemchat",
    help="Gemini chat with tool calling for the web and Telegram.",
    add_completion=False,
    rich_markup_mode="rich",
)

EXIT_COMMANDS = frozenset({"quit", "exit", "q"})


def _load_settings() -> Settings:
    settings = Settings()
    configure_logging(level=settings.log_level)
    return settings


def _build_runtime(settings: Settings) -> AppRuntime:
    try:
        return AppRuntime(settings)
    except ConfigurationError as exc:
        typer.secho(f"configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from exc


def _web_channel(runtime: AppRuntime, settings: Settings, host: str | None, port: int | None) -> WebChannel:
    return WebChannel(
        runtime,
        host=host or settings.host,
        port=port or settings.port,
        allowed_origins=settings.allowed_origins,
    )


def _telegram_channel(runtime: AppRuntime, settings: Settings) -> TelegramChannel:
    return TelegramChannel(
        runtime,
        TelegramConfig(token=settings.telegram_token or "", allow_from=set(settings.telegram_allow_from)),
    )


async def _run_channels(runtime: AppRuntime, manager: ChannelManager) -> None:
    async with runtime:
        await manager.run()


@app.command()
def serve(
    host: str | None = typer.Option(None, help="Bind address"),
    port: int | None = typer.Option(None, help="Bind port"),
) -> None:
    """Serve the web chat endpoint only."""
    settings = _load_settings()
    runtime = _build_runtime(settings)
    manager = ChannelManager()
    manager.register(_web_channel(runtime, settings, host, port))
    asyncio.run(_run_channels(runtime, manager))


@app.command()
def telegram() -> None:
    """Run the Telegram bot only."""
    settings = _load_settings()
    if not settings.telegram_token:
        typer.secho("TELEGRAM_BOT_TOKEN is not configured", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    runtime = _build_runtime(settings)
    manager = ChannelManager()
    manager.register(_telegram_channel(runtime, settings))
    asyncio.run(_run_channels(runtime, manager))


@app.command()
def run(
    host: str | None = typer.Option(None, help="Bind address"),
    port: int | None = typer.Option(None, help="Bind port"),
) -> None:
    """Serve the web chat endpoint and the Telegram bot in one process."""
    settings = _load_settings()
    runtime = _build_runtime(settings)
    manager = ChannelManager()
    manager.register(_web_channel(runtime, settings, host, port))
    if settings.telegram_token:
        manager.register(_telegram_channel(runtime, settings))
    else:
        logger.warning("TELEGRAM_BOT_TOKEN not found; the Telegram bot will not run")
    asyncio.run(_run_channels(runtime, manager))


@app.command()
def chat(session: str = typer.Option("cli:local", help="Session id to talk in")) -> None:
    """Chat with the assistant from the terminal."""
    settings = Settings()
    configure_logging(profile="chat", level=settings.log_level)
    runtime = _build_runtime(settings)
    asyncio.run(_chat_loop(runtime, session))


async def _chat_loop(runtime: AppRuntime, session_id: str) -> None:
    console = Console()
    console.print("[bold]gemchat[/bold] - type /clear to forget the conversation, quit to leave.")
    async with runtime:
        while True:
            try:
                raw = await asyncio.to_thread(console.input, "[bold cyan]you>[/bold cyan] ")
            except (EOFError, KeyboardInterrupt):
                break
            if raw.strip().casefold() in EXIT_COMMANDS:
                break
            try:
                reply = await runtime.handle_input(session_id, raw)
            except EmptyInputError:
                continue
            if is_reset_command(raw) or not reply.ok:
                console.print(reply.text, style="yellow" if reply.ok else "red")
                continue
            console.print(Markdown(reply.text))
