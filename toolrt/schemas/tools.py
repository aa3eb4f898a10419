"""Wire-level models for tool calls and declarations.

These are the JSON shapes exchanged with the caller: the call intent
emitted by an LLM, the response handed back, and the declarations that
describe what may be called.
"""

import json
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer

from toolrt.errors import ParseError

# Key used for type names when structured schemas are disabled
SOURCE_TYPE_TAG = "python"


class OpaqueSignature(BaseModel):
    """A type described only by its name."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["opaque"] = "opaque"
    name: str = Field(..., description="Qualified type name")

    def to_wire(self) -> dict[str, Any]:
        return {SOURCE_TYPE_TAG: self.name}


class SchemaSignature(BaseModel):
    """A type described by a JSON-Schema-shaped object."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["schema"] = "schema"
    json_schema: dict[str, Any] = Field(
        default_factory=dict,
        description="JSON Schema for the type",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.json_schema


TypeSignature = Annotated[OpaqueSignature | SchemaSignature, Field(discriminator="kind")]


class FunctionCall(BaseModel):
    """A request to run one tool, usually parsed from an LLM response."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Registered tool name")
    arguments: Any = Field(default=None, description="Tool arguments as JSON")
    id: str | int | None = Field(
        default=None,
        description="Optional call identifier echoed in the response",
    )

    @classmethod
    def parse(cls, payload: Any) -> "FunctionCall":
        """Build a call from a raw JSON payload or an already-decoded mapping.

        A ``FunctionCall`` is returned unchanged.

        Raises:
            ParseError: If the payload is not a valid call shape.
        """
        if isinstance(payload, cls):
            return payload

        data: Any = payload
        if isinstance(payload, Mapping):
            data = dict(payload)
        elif isinstance(payload, (str, bytes)):
            try:
                data = json.loads(payload)
            except ValueError as exc:
                raise ParseError(payload, f"invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise ParseError(payload, f"expected a JSON object, got {type(data).__name__}")
        if "name" not in data:
            raise ParseError(payload, "missing field 'name'")

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            reasons = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in exc.errors(include_url=False)
            )
            raise ParseError(payload, reasons) from exc


class FunctionResponse(BaseModel):
    """Result of a successful call, tagged with the call's name and id."""

    id: str | int | None = None
    name: str
    result: Any = None


class ToolCallResult(BaseModel):
    """Outcome of a call that never raises: either a result or an error."""

    name: str | None = Field(default=None, description="Tool name, if the call parsed")
    id: str | int | None = None
    result: Any = Field(default=None, description="Tool execution result")
    error: dict[str, Any] | None = Field(
        default=None,
        description="Error object (kind, message, details) if the call failed",
    )

    @property
    def ok(self) -> bool:
        return self.error is None


class FunctionDecl(BaseModel):
    """LLM-facing declaration of one registered tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique tool identifier")
    description: str = Field(..., description="Human-readable description")
    parameters: TypeSignature
    returns: TypeSignature

    @field_serializer("parameters", "returns")
    def _signature_to_wire(self, signature: OpaqueSignature | SchemaSignature) -> dict[str, Any]:
        return signature.to_wire()
