"""Error taxonomy shared by the registry, dispatcher and schema producer.

Every failure surfaced by toolrt is a ``ToolError`` subclass carrying a
``kind`` discriminant and a human-readable message. ``to_dict()`` renders
the error object handed back to the caller (e.g. an LLM).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

from pydantic import ValidationError


class ToolErrorKind(str, Enum):
    """Discriminant for tool errors."""

    FUNCTION_NOT_FOUND = "function_not_found"
    DUPLICATE_NAME = "duplicate_name"
    DESERIALIZATION = "deserialization"
    SERIALIZATION = "serialization"
    HANDLER = "handler"
    SCHEMA = "schema"
    PARSE = "parse"
    REGISTRY_FROZEN = "registry_frozen"


class ToolError(Exception):
    """Base exception for tool runtime errors."""

    kind: ClassVar[ToolErrorKind]

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        """Kind-specific fields included in the error object."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-ready error object."""
        return {"kind": self.kind.value, "message": self.message, **self.details()}


class FunctionNotFoundError(ToolError):
    """Raised when a call targets a name that was never registered."""

    kind = ToolErrorKind.FUNCTION_NOT_FOUND

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool function '{name}' not found")
        self.name = name

    def details(self) -> dict[str, Any]:
        return {"name": self.name}


class DuplicateNameError(ToolError):
    """Raised when a tool name is registered twice."""

    kind = ToolErrorKind.DUPLICATE_NAME

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool function '{name}' is already registered")
        self.name = name

    def details(self) -> dict[str, Any]:
        return {"name": self.name}


class RegistryFrozenError(ToolError):
    """Raised when a frozen registry is modified."""

    kind = ToolErrorKind.REGISTRY_FROZEN

    def __init__(self, name: str) -> None:
        super().__init__(f"Registry is frozen; cannot modify tool '{name}'")
        self.name = name

    def details(self) -> dict[str, Any]:
        return {"name": self.name}


class DeserializationError(ToolError):
    """Raised when call arguments do not match the handler's input shape.

    Keeps the original arguments and the underlying validation error so the
    mismatch (missing field, wrong type, ...) can be diagnosed.
    """

    kind = ToolErrorKind.DESERIALIZATION

    def __init__(self, arguments: Any, source: Exception) -> None:
        super().__init__(f"Failed to deserialize arguments: {_summarize(source)}")
        self.arguments = arguments
        self.source = source

    @property
    def errors(self) -> list[dict[str, Any]]:
        """Structural complaints, one per offending location."""
        if isinstance(self.source, ValidationError):
            return [
                {"loc": list(err["loc"]), "type": err["type"], "msg": err["msg"]}
                for err in self.source.errors(include_url=False)
            ]
        return [{"loc": [], "type": type(self.source).__name__, "msg": str(self.source)}]

    def details(self) -> dict[str, Any]:
        return {"arguments": self.arguments, "errors": self.errors}


class SerializationError(ToolError):
    """Raised when a handler's output cannot be converted to JSON."""

    kind = ToolErrorKind.SERIALIZATION

    def __init__(self, source: Exception) -> None:
        super().__init__(f"JSON serialization error: {source}")
        self.source = source


class HandlerError(ToolError):
    """Raised when the handler itself reports a failure."""

    kind = ToolErrorKind.HANDLER


class SchemaError(ToolError):
    """Raised when a type cannot be described while schemas are enabled."""

    kind = ToolErrorKind.SCHEMA

    def __init__(
        self,
        type_name: str,
        tool: str | None = None,
        reason: str = "type has no schema",
    ) -> None:
        where = f" in tool '{tool}'" if tool else ""
        super().__init__(f"Cannot describe type '{type_name}'{where}: {reason}")
        self.type_name = type_name
        self.tool = tool
        self.reason = reason

    def for_tool(self, tool: str) -> SchemaError:
        """Copy of this error attributed to ``tool``."""
        return SchemaError(self.type_name, tool=tool, reason=self.reason)

    def details(self) -> dict[str, Any]:
        return {"tool": self.tool, "type_name": self.type_name, "reason": self.reason}


class ParseError(ToolError):
    """Raised when a top-level call payload is not a valid FunctionCall."""

    kind = ToolErrorKind.PARSE

    def __init__(self, input: Any, reason: str) -> None:
        super().__init__(f"Parse error: {reason}")
        self.input = input
        self.reason = reason

    def details(self) -> dict[str, Any]:
        payload = self.input
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        return {"input": payload if isinstance(payload, str) else repr(payload), "reason": self.reason}


def _summarize(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        parts = []
        for err in exc.errors(include_url=False):
            loc = ".".join(str(part) for part in err["loc"]) or "<root>"
            parts.append(f"{loc}: {err['msg']}")
        return "; ".join(parts)
    return str(exc)
