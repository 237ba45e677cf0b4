from __future__ import annotations

import pytest

from gemchat.config import DEFAULT_GEMINI_API_BASE, Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.model == "gemini-2.0-flash"
    assert settings.api_base == DEFAULT_GEMINI_API_BASE
    assert settings.max_tool_rounds == 5
    assert settings.allowed_origins == ["*"]


def test_reads_unprefixed_deployment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "gk")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "tg")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("GOOGLE_CSE_ID", "cx")

    settings = Settings(_env_file=None)

    assert settings.gemini_api_key == "gk"
    assert settings.telegram_token == "tg"  # noqa: S105
    assert settings.port == 8080
    assert settings.google_cse_id == "cx"


def test_prefixed_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMCHAT_MODEL", "gemini-2.5-flash")
    monkeypatch.setenv("GEMCHAT_MAX_TOOL_ROUNDS", "2")

    settings = Settings(_env_file=None)

    assert settings.model == "gemini-2.5-flash"
    assert settings.max_tool_rounds == 2


def test_comma_separated_lists(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMCHAT_TELEGRAM_ALLOW_FROM", "123, alice,,")
    monkeypatch.setenv("GEMCHAT_ALLOWED_ORIGINS", "https://a.test,https://b.test")

    settings = Settings(_env_file=None)

    assert settings.telegram_allow_from == {"123", "alice"}
    assert settings.allowed_origins == ["https://a.test", "https://b.test"]


def test_negative_tool_rounds_rejected() -> None:
    with pytest.raises(ValueError, match="max_tool_rounds"):
        Settings(max_tool_rounds=-1, _env_file=None)
