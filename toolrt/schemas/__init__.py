"""Tool call and declaration schemas."""

from toolrt.schemas.tools import (
    SOURCE_TYPE_TAG,
    FunctionCall,
    FunctionDecl,
    FunctionResponse,
    OpaqueSignature,
    SchemaSignature,
    ToolCallResult,
    TypeSignature,
)

__all__ = [
    "SOURCE_TYPE_TAG",
    "FunctionCall",
    "FunctionDecl",
    "FunctionResponse",
    "OpaqueSignature",
    "SchemaSignature",
    "ToolCallResult",
    "TypeSignature",
]
