"""gemchat - Gemini tool-calling chat for the web and Telegram."""

from .app.runtime import AppRuntime, Reply
from .core.engine import Orchestrator
from .tools.registry import ToolRegistry
from .transcript.store import TranscriptStore

__version__ = "0.1.0"

__all__ = ["AppRuntime", "Orchestrator", "Reply", "ToolRegistry", "TranscriptStore"]
