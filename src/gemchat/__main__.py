"""gemchat CLI bootstrap."""

from __future__ import annotations

from gemchat.cli import app

if __name__ == "__main__":
    app()
