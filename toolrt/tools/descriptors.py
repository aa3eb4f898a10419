"""Registration descriptors gathered before a registry is built.

Decorating a function with ``@tool`` records a ``ToolDescriptor`` in
``linked_registrations``; ``ToolRegistry.from_linked_registrations()``
later turns that list into a registry. Any other producer of descriptors
(a config file loader, a build step) works the same way.
"""

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar, overload

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class ToolDescriptor:
    """Everything needed to register one tool."""

    name: str
    description: str
    handler: Callable[..., Any]


# Filled at import time by @tool
linked_registrations: list[ToolDescriptor] = []


def describe_callable(func: Callable[..., Any], name: str | None = None, description: str | None = None) -> ToolDescriptor:
    """Descriptor for ``func``, defaulting to its name and docstring."""
    return ToolDescriptor(
        name=name or func.__name__,
        description=description if description is not None else inspect.getdoc(func) or "",
        handler=func,
    )


@overload
def tool(func: F) -> F: ...


@overload
def tool(
    *,
    name: str | None = None,
    description: str | None = None,
    into: list[ToolDescriptor] | None = None,
) -> Callable[[F], F]: ...


def tool(
    func: F | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    into: list[ToolDescriptor] | None = None,
) -> F | Callable[[F], F]:
    """Mark a function as a tool.

    Usage:
        @tool
        async def add(pair: tuple[int, int]) -> int:
            \"\"\"Add two integers.\"\"\"
            return pair[0] + pair[1]

        @tool(name="greet", description="Say hello")
        def hello(name: str) -> str:
            return f"Hello, {name}!"

    Args:
        name: Tool name; defaults to the function name.
        description: Tool description; defaults to the docstring.
        into: Descriptor list to append to; defaults to ``linked_registrations``.
    """
    target = linked_registrations if into is None else into

    def decorator(fn: F) -> F:
        target.append(describe_callable(fn, name=name, description=description))
        return fn

    if func is not None:
        return decorator(func)
    return decorator
