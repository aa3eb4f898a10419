"""Schema producer: derive JSON Schema signatures from Python types.

``json_schema(tp)`` walks a type structurally:

- primitives map to fixed schemas
- ``Optional[T]`` maps to ``T`` (the enclosing record drops it from ``required``;
  ``fill_optional_fields`` lets callers actually omit such fields)
- sequences, sets and homogeneous tuples map to ``{"type": "array", "items": ...}``
- fixed tuples and NamedTuples map to positional ``prefixItems`` arrays
- ``dict[str, T]`` maps to ``additionalProperties``
- ``Literal`` and ``Enum`` map to ``enum``
- records (pydantic models, dataclasses, TypedDicts) map to objects,
  field by field

A class can take over its own description by implementing the
``ToolSchema`` protocol (a ``__tool_schema__`` classmethod).

Results are cached per type; cached values are never handed out directly.
"""

from __future__ import annotations

import copy
import dataclasses
import datetime
import enum
import threading
import types
import typing
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Annotated, Any, Literal, Protocol, Union, get_args, get_origin, runtime_checkable

from pydantic import BaseModel

from toolrt.errors import SchemaError
from toolrt.schemas.tools import OpaqueSignature, SchemaSignature

NoneType = type(None)

_PRIMITIVES: dict[Any, dict[str, Any]] = {
    str: {"type": "string"},
    bool: {"type": "boolean"},
    int: {"type": "integer"},
    float: {"type": "number"},
    NoneType: {"type": "null"},
    None: {"type": "null"},
    datetime.datetime: {"type": "string", "format": "date-time"},
    datetime.date: {"type": "string", "format": "date"},
    datetime.time: {"type": "string", "format": "time"},
    uuid.UUID: {"type": "string", "format": "uuid"},
}

_ARRAY_ORIGINS = (list, Sequence, Iterable)
_SET_ORIGINS = (set, frozenset)
_MAPPING_ORIGINS = (dict, Mapping)

_JSON_TYPES = ((bool, "boolean"), (int, "integer"), (float, "number"), (str, "string"))


@runtime_checkable
class ToolSchema(Protocol):
    """Capability implemented by types that describe themselves."""

    @classmethod
    def __tool_schema__(cls) -> dict[str, Any]: ...


class SchemaCache:
    """Write-once-per-type cache of computed schemas.

    Computation happens outside the lock; the first stored value wins, which
    is safe because every computation for the same type is equivalent.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[Any, dict[str, Any]] = {}

    def get_or_compute(self, key: Any, compute: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        try:
            return self._entries[key]
        except KeyError:
            pass
        except TypeError:
            # Unhashable type expression (e.g. Annotated with a list)
            return compute()

        value = compute()
        with self._lock:
            return self._entries.setdefault(key, value)

    def __contains__(self, key: Any) -> bool:
        try:
            return key in self._entries
        except TypeError:
            return False

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


schema_cache = SchemaCache()


def type_name(tp: Any) -> str:
    """Readable, qualified name for a type expression."""
    if tp is NoneType or tp is None:
        return "None"
    if isinstance(tp, type) and get_origin(tp) is None:
        if tp.__module__ == "builtins":
            return tp.__qualname__
        return f"{tp.__module__}.{tp.__qualname__}"
    return repr(tp).replace("typing.", "")


def is_optional(tp: Any) -> bool:
    """Whether ``tp`` admits None (``Optional[T]``, ``T | None``)."""
    if get_origin(tp) is Annotated:
        return is_optional(get_args(tp)[0])
    return _is_union(tp) and NoneType in get_args(tp)


def json_schema(tp: Any) -> dict[str, Any]:
    """JSON Schema for ``tp``.

    Raises:
        SchemaError: If ``tp`` (or anything nested in it) cannot be described.
    """
    return copy.deepcopy(schema_cache.get_or_compute(tp, lambda: _build(tp, ())))


def describe(tp: Any, schema_enabled: bool = True) -> OpaqueSignature | SchemaSignature:
    """Type signature for ``tp``; opaque when schema generation is disabled."""
    if not schema_enabled:
        return OpaqueSignature(name=type_name(tp))
    return SchemaSignature(json_schema=json_schema(tp))


def fill_optional_fields(tp: Any, value: Any) -> Any:
    """Copy of the JSON ``value`` with omitted Optional record fields set to None.

    Walks ``value`` alongside ``tp`` the same way ``json_schema`` walks
    ``tp``, so every field a schema leaves out of ``required`` because its
    type admits None may actually be omitted by the caller. Values that
    do not match the expected shape are left for validation to reject.
    """
    try:
        return _fill(tp, value)
    except SchemaError:
        # Unresolvable annotations; validation reports the real problem
        return value


def _fill(tp: Any, value: Any) -> Any:
    if isinstance(tp, type) and isinstance(tp, ToolSchema):
        return value

    origin = get_origin(tp)
    args = get_args(tp)

    if origin is Annotated:
        return _fill(args[0], value)

    if _is_union(tp):
        members = [arg for arg in args if arg is not NoneType]
        if len(members) == 1 and value is not None:
            return _fill(members[0], value)
        return value

    container = origin if origin is not None else tp

    if isinstance(value, list):
        if not args:
            return value
        if container in _ARRAY_ORIGINS or container in _SET_ORIGINS:
            return [_fill(args[0], item) for item in value]
        if container is tuple:
            if len(args) == 2 and args[1] is Ellipsis:
                return [_fill(args[0], item) for item in value]
            return [_fill(arg, item) for arg, item in zip(args, value)] + value[len(args):]
        return value

    if not isinstance(value, dict):
        return value

    if container in _MAPPING_ORIGINS:
        if len(args) == 2:
            return {key: _fill(args[1], item) for key, item in value.items()}
        return value

    fields = _record_fields(tp)
    if fields is None:
        return value

    filled = dict(value)
    for name, annotation, has_default, _ in fields:
        if name in filled:
            filled[name] = _fill(annotation, filled[name])
        elif not has_default and is_optional(annotation):
            filled[name] = None
    return filled


def _is_union(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union or origin is types.UnionType


def _build(tp: Any, stack: tuple[Any, ...]) -> dict[str, Any]:
    if tp is Any or tp is object:
        return {}

    if isinstance(tp, type) and isinstance(tp, ToolSchema):
        return dict(tp.__tool_schema__())

    primitive = _primitive(tp)
    if primitive is not None:
        return primitive

    origin = get_origin(tp)
    args = get_args(tp)

    if origin is Annotated:
        return _build(args[0], stack)

    if _is_union(tp):
        members = [arg for arg in args if arg is not NoneType]
        if len(members) == 1:
            return _build(members[0], stack)
        return {"anyOf": [_build(arg, stack) for arg in members]}

    if origin is Literal:
        return _enum_schema(list(args))

    container = origin if origin is not None else tp

    if container in _ARRAY_ORIGINS:
        schema: dict[str, Any] = {"type": "array"}
        if args:
            schema["items"] = _build(args[0], stack)
        return schema

    if container in _SET_ORIGINS:
        schema = {"type": "array", "uniqueItems": True}
        if args:
            schema["items"] = _build(args[0], stack)
        return schema

    if container is tuple:
        return _tuple_schema(args, stack)

    if container in _MAPPING_ORIGINS:
        schema = {"type": "object"}
        if args:
            key, value = args
            if key is not str and not (isinstance(key, type) and issubclass(key, str)):
                raise SchemaError(type_name(tp), reason="mapping keys must be strings")
            schema["additionalProperties"] = _build(value, stack)
        return schema

    if not isinstance(tp, type):
        raise SchemaError(type_name(tp), reason="unsupported type expression")

    if issubclass(tp, enum.Enum):
        return _enum_schema([member.value for member in tp])

    if tp in stack:
        raise SchemaError(type_name(tp), reason="recursive type")

    fields = _record_fields(tp)
    if fields is not None:
        schema = _record_schema(fields, stack + (tp,))
        if issubclass(tp, BaseModel) and tp.__doc__:
            schema["description"] = _first_paragraph(tp.__doc__)
        return schema
    if issubclass(tp, tuple) and hasattr(tp, "_fields"):
        return _namedtuple_schema(tp, stack + (tp,))

    raise SchemaError(type_name(tp))


def _primitive(tp: Any) -> dict[str, Any] | None:
    try:
        schema = _PRIMITIVES.get(tp)
    except TypeError:
        return None
    return dict(schema) if schema is not None else None


def _enum_schema(values: list[Any]) -> dict[str, Any]:
    schema: dict[str, Any] = {}
    json_types = {_json_type(value) for value in values}
    if len(json_types) == 1 and None not in json_types:
        schema["type"] = json_types.pop()
    schema["enum"] = values
    return schema


def _json_type(value: Any) -> str | None:
    for py_type, name in _JSON_TYPES:
        if isinstance(value, py_type):
            return name
    return None


def _tuple_schema(args: tuple[Any, ...], stack: tuple[Any, ...]) -> dict[str, Any]:
    if not args:
        return {"type": "array"}
    if len(args) == 2 and args[1] is Ellipsis:
        return {"type": "array", "items": _build(args[0], stack)}
    return {
        "type": "array",
        "prefixItems": [_build(arg, stack) for arg in args],
        "minItems": len(args),
        "maxItems": len(args),
    }


def _record_schema(
    fields: Iterable[tuple[str, Any, bool, str | None]],
    stack: tuple[Any, ...],
) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, annotation, has_default, description in fields:
        prop = _build(annotation, stack)
        if description:
            prop["description"] = description
        properties[name] = prop
        if not has_default and not is_optional(annotation):
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


def _record_fields(tp: Any) -> list[tuple[str, Any, bool, str | None]] | None:
    """``(wire name, annotation, has default, description)`` per field, or None if ``tp`` is no record."""
    if not isinstance(tp, type) or get_origin(tp) is not None:
        return None

    if issubclass(tp, BaseModel):
        return [
            (info.alias or name, info.annotation, not info.is_required(), info.description)
            for name, info in tp.model_fields.items()
        ]

    if dataclasses.is_dataclass(tp):
        hints = _hints(tp)
        return [
            (
                field.name,
                hints.get(field.name, Any),
                field.default is not dataclasses.MISSING
                or field.default_factory is not dataclasses.MISSING,
                field.metadata.get("description"),
            )
            for field in dataclasses.fields(tp)
            if field.init
        ]

    if typing.is_typeddict(tp):
        hints = _hints(tp)
        optional_keys = getattr(tp, "__optional_keys__", frozenset())
        return [(name, hints[name], name in optional_keys, None) for name in hints]

    return None


def _namedtuple_schema(cls: type, stack: tuple[Any, ...]) -> dict[str, Any]:
    hints = _hints(cls)
    items = []
    for name in cls._fields:
        item = _build(hints.get(name, Any), stack)
        item["title"] = name
        items.append(item)
    return {
        "type": "array",
        "prefixItems": items,
        "minItems": len(items),
        "maxItems": len(items),
    }


def _hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as exc:
        raise SchemaError(type_name(cls), reason=f"unresolvable annotation: {exc}") from exc


def _first_paragraph(doc: str) -> str:
    return doc.strip().split("\n\n", 1)[0].strip()
