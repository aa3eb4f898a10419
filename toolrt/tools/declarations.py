"""Declaration builder: describe registered tools for an LLM."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from toolrt.errors import SchemaError
from toolrt.schemas.tools import FunctionDecl

if TYPE_CHECKING:
    from toolrt.tools.registry import ToolRegistration


def build_declaration(registration: ToolRegistration, schema_enabled: bool = True) -> FunctionDecl:
    """Declaration for one tool.

    Raises:
        SchemaError: Naming the tool, if its input or output type is undescribable.
    """
    try:
        return FunctionDecl(
            name=registration.name,
            description=registration.description,
            parameters=registration.input_signature(schema_enabled),
            returns=registration.output_signature(schema_enabled),
        )
    except SchemaError as exc:
        raise exc.for_tool(registration.name) from exc


def build_declarations(
    registrations: Iterable[ToolRegistration],
    schema_enabled: bool = True,
) -> list[FunctionDecl]:
    """Declarations for every registration, in iteration order."""
    return [build_declaration(reg, schema_enabled) for reg in registrations]


def to_openai_tools(declarations: Iterable[FunctionDecl]) -> list[dict[str, Any]]:
    """Render declarations in the OpenAI ``tools`` request shape."""
    return [
        {
            "type": "function",
            "function": {
                "name": decl.name,
                "description": decl.description,
                "parameters": decl.parameters.to_wire(),
            },
        }
        for decl in declarations
    ]
