"""Core orchestration engine and transcript types."""

from gemchat.core.engine import Orchestrator
from gemchat.core.types import Turn, TurnResult, TurnState

__all__ = ["Orchestrator", "Turn", "TurnResult", "TurnState"]
