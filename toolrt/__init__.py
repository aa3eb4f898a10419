"""toolrt - expose typed Python functions as JSON-callable tools."""

__version__ = "0.1.0"

from toolrt.config import DuplicatePolicy, Settings, get_settings  # noqa: E402
from toolrt.errors import (  # noqa: E402
    DeserializationError,
    DuplicateNameError,
    FunctionNotFoundError,
    HandlerError,
    ParseError,
    RegistryFrozenError,
    SchemaError,
    SerializationError,
    ToolError,
    ToolErrorKind,
)
from toolrt.schemas import (  # noqa: E402
    FunctionCall,
    FunctionDecl,
    FunctionResponse,
    OpaqueSignature,
    SchemaSignature,
    ToolCallResult,
)
from toolrt.signatures import ToolSchema, describe, json_schema  # noqa: E402
from toolrt.tools import (  # noqa: E402
    ToolDescriptor,
    ToolRegistration,
    ToolRegistry,
    get_tool_registry,
    tool,
)

__all__ = [
    "DeserializationError",
    "DuplicateNameError",
    "DuplicatePolicy",
    "FunctionCall",
    "FunctionDecl",
    "FunctionNotFoundError",
    "FunctionResponse",
    "HandlerError",
    "OpaqueSignature",
    "ParseError",
    "RegistryFrozenError",
    "SchemaError",
    "SchemaSignature",
    "SerializationError",
    "Settings",
    "ToolCallResult",
    "ToolDescriptor",
    "ToolError",
    "ToolErrorKind",
    "ToolRegistration",
    "ToolRegistry",
    "ToolSchema",
    "__version__",
    "describe",
    "get_settings",
    "get_tool_registry",
    "json_schema",
    "tool",
]
