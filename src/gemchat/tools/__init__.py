"""Tool registry and built-in tools."""

from gemchat.tools.registry import ToolContext, ToolDescriptor, ToolRegistry

__all__ = ["ToolContext", "ToolDescriptor", "ToolRegistry"]
