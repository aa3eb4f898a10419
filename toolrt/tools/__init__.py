"""Tool registry, dispatch and declarations."""

from toolrt.tools.declarations import build_declarations, to_openai_tools
from toolrt.tools.descriptors import ToolDescriptor, linked_registrations, tool
from toolrt.tools.dispatch import ToolHandler, dispatch
from toolrt.tools.registry import ToolRegistration, ToolRegistry, get_tool_registry

__all__ = [
    "ToolDescriptor",
    "ToolHandler",
    "ToolRegistration",
    "ToolRegistry",
    "build_declarations",
    "dispatch",
    "get_tool_registry",
    "linked_registrations",
    "to_openai_tools",
    "tool",
]
