"""Configuration management for gemchat."""

from __future__ import annotations

from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. When you are not sure about an answer, prefer the web search tool "
    "for current events, prices, schedules or facts that change often. Use the weather tool for weather "
    "questions and the Cloudinary tools when the user wants to store or browse images."
)


def _env(name: str, *aliases: str) -> AliasChoices:
    return AliasChoices(f"GEMCHAT_{name}", *aliases)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="GEMCHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Completion service
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=_env("GEMINI_API_KEY", "GEMINI_API_KEY"),
        description="API key for the Gemini API",
    )
    model: str = Field(default="gemini-2.0-flash", description="Gemini model name")
    api_base: str = Field(default=DEFAULT_GEMINI_API_BASE, description="Gemini API base URL")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, description="System instruction for the model")
    completion_timeout_seconds: float = Field(default=60, gt=0)

    # Orchestration
    max_tool_rounds: int = Field(default=5, ge=0, description="Maximum tool-call rounds per user turn")
    tool_timeout_seconds: float = Field(default=30, gt=0)

    # Telegram
    telegram_token: str | None = Field(
        default=None,
        validation_alias=_env("TELEGRAM_TOKEN", "TELEGRAM_BOT_TOKEN"),
    )
    telegram_allow_from: Annotated[set[str], NoDecode] = Field(default_factory=set)

    # Web
    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=3000, validation_alias=_env("PORT", "PORT"))
    allowed_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Tools
    weather_api_base: str = "https://wttr.in"
    google_search_api_key: str | None = Field(
        default=None,
        validation_alias=_env("GOOGLE_SEARCH_API_KEY", "GOOGLE_SEARCH_API_KEY"),
    )
    google_cse_id: str | None = Field(default=None, validation_alias=_env("GOOGLE_CSE_ID", "GOOGLE_CSE_ID"))
    cloudinary_cloud_name: str | None = Field(
        default=None,
        validation_alias=_env("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_CLOUD_NAME"),
    )
    cloudinary_api_key: str | None = Field(
        default=None,
        validation_alias=_env("CLOUDINARY_API_KEY", "CLOUDINARY_API_KEY"),
    )
    cloudinary_api_secret: str | None = Field(
        default=None,
        validation_alias=_env("CLOUDINARY_API_SECRET", "CLOUDINARY_API_SECRET"),
    )

    # Logging
    log_level: str = "INFO"

    @field_validator("telegram_allow_from", "allowed_origins", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value
