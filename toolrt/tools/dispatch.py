"""Dispatch path: JSON arguments in, handler call, JSON result out.

A handler's parameters form its input record: calling ``add(pair)`` takes
``{"pair": [3, 4]}``. The record is a pydantic model generated from the
handler signature, so validation errors point at the offending argument.
"""

from __future__ import annotations

import asyncio
import inspect
import math
import time
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PydanticSchemaGenerationError,
    TypeAdapter,
    ValidationError,
    create_model,
)
from pydantic_core import PydanticSerializationError

from toolrt.errors import DeserializationError, HandlerError, SerializationError, ToolError
from toolrt.logging import bound_context, get_logger
from toolrt.metrics import record_tool_call
from toolrt.signatures import fill_optional_fields, is_optional

if TYPE_CHECKING:
    from toolrt.tools.registry import ToolRegistration

logger = get_logger(__name__)

_UNSUPPORTED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


@dataclass(frozen=True)
class ToolHandler:
    """Type-erased wrapper around a tool function.

    ``invoke`` is the uniform ``JSON -> JSON`` entry point; ``input_model``
    and ``output_type`` are kept only so signatures can be described.
    """

    func: Callable[..., Any]
    input_model: type[BaseModel]
    output_type: Any
    output_adapter: TypeAdapter[Any]
    parameters: tuple[tuple[str, str], ...]
    positional: tuple[str, ...]
    is_async: bool

    @classmethod
    def from_callable(cls, func: Callable[..., Any]) -> ToolHandler:
        """Inspect ``func`` and build its input record and output adapter.

        Parameters whose names pydantic reserves (``_private``, ``model_*``,
        ``BaseModel`` attributes) get a generated field name and keep their
        own name as the alias, which is what callers and declarations see.

        Raises:
            TypeError: If ``func`` takes ``*args``/``**kwargs`` or is not callable.
        """
        if not callable(func):
            raise TypeError(f"Tool handler must be callable, got {type(func).__name__}")

        func_name = getattr(func, "__name__", type(func).__name__)
        signature = inspect.signature(func)
        hints = _type_hints(func)
        names = set(signature.parameters)

        fields: dict[str, Any] = {}
        parameters: list[tuple[str, str]] = []
        positional: list[str] = []
        for index, param in enumerate(signature.parameters.values()):
            if param.kind in _UNSUPPORTED_KINDS:
                raise TypeError(
                    f"Tool handler '{func_name}' cannot take *args or **kwargs"
                )
            annotation = hints.get(param.name, Any)
            if param.default is not inspect.Parameter.empty:
                default = param.default
            elif is_optional(annotation):
                default = None
            else:
                default = ...

            if _is_field_name(param.name):
                field_name = param.name
                fields[field_name] = (annotation, default)
            else:
                field_name = f"param_{index}"
                while field_name in names:
                    field_name += "_"
                fields[field_name] = (annotation, Field(default, alias=param.name))

            parameters.append((field_name, param.name))
            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                positional.append(param.name)

        input_model = create_model(
            f"{func_name}_params",
            __config__=ConfigDict(arbitrary_types_allowed=True),
            __module__=getattr(func, "__module__", None) or __name__,
            **fields,
        )

        output_type = hints.get("return", Any)
        if output_type is type(None):
            output_type = None
        try:
            output_adapter: TypeAdapter[Any] = TypeAdapter(output_type)
        except PydanticSchemaGenerationError:
            # Serialized by inspecting the returned value instead
            output_adapter = TypeAdapter(Any)

        return cls(
            func=func,
            input_model=input_model,
            output_type=output_type,
            output_adapter=output_adapter,
            parameters=tuple(parameters),
            positional=tuple(positional),
            is_async=inspect.iscoroutinefunction(func)
            or inspect.iscoroutinefunction(getattr(func, "__call__", None)),
        )

    @property
    def parameter_names(self) -> list[str]:
        """Argument names as callers pass them."""
        return [name for _, name in self.parameters]

    def bind(self, arguments: Any) -> tuple[list[Any], dict[str, Any]]:
        """Validate JSON arguments into call args for the handler.

        Omitted Optional fields of nested records are filled with None first,
        matching the declared schema.

        Raises:
            DeserializationError: If the arguments do not fit the input record.
        """
        payload = {} if arguments is None else fill_optional_fields(self.input_model, arguments)
        try:
            record = self.input_model.model_validate(payload)
        except ValidationError as exc:
            raise DeserializationError(arguments, exc) from exc

        kwargs = {name: getattr(record, field_name) for field_name, name in self.parameters}
        args = [kwargs.pop(name) for name in self.positional]
        return args, kwargs

    def serialize(self, output: Any) -> Any:
        """Convert handler output into a JSON value.

        Raises:
            SerializationError: On non-finite floats, cycles or unserializable objects.
        """
        try:
            value = self.output_adapter.dump_python(output, mode="json", by_alias=True)
            # JSON mode may map NaN/Infinity to null; check the unconverted floats
            _reject_non_finite(self.output_adapter.dump_python(output, by_alias=True))
        except (PydanticSerializationError, ValueError, TypeError, RecursionError) as exc:
            raise SerializationError(exc) from exc
        return value

    async def invoke(self, arguments: Any) -> Any:
        """Run the handler on JSON arguments and return its JSON result."""
        args, kwargs = self.bind(arguments)
        try:
            if self.is_async:
                output = await self.func(*args, **kwargs)
            else:
                output = await asyncio.to_thread(self.func, *args, **kwargs)
        except ToolError:
            raise
        except Exception as exc:
            raise HandlerError(str(exc) or type(exc).__name__) from exc
        return self.serialize(output)


def _is_field_name(name: str) -> bool:
    return not name.startswith(("_", "model_")) and not hasattr(BaseModel, name)


def _reject_non_finite(value: Any) -> None:
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Out of range float value {value!r} is not JSON compliant")
    elif isinstance(value, dict):
        for item in value.values():
            _reject_non_finite(item)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            _reject_non_finite(item)


def _type_hints(func: Callable[..., Any]) -> dict[str, Any]:
    target: Any = func
    if not (inspect.isfunction(func) or inspect.ismethod(func)):
        # Callable instances carry their annotations on __call__
        target = getattr(type(func), "__call__", func)
    try:
        return typing.get_type_hints(target, include_extras=True)
    except TypeError:
        # Builtins and partials expose no annotations
        return {}


async def dispatch(
    registration: ToolRegistration,
    arguments: Any,
    call_id: str | int | None = None,
) -> Any:
    """Invoke a resolved registration, with logging and metrics.

    Raises:
        ToolError: Any dispatch failure (deserialization, handler, serialization).
    """
    with bound_context(tool_name=registration.name, call_id=call_id):
        logger.debug("tool_call_start")
        start_time = time.perf_counter()
        try:
            result = await registration.handler.invoke(arguments)
        except ToolError as exc:
            elapsed = time.perf_counter() - start_time
            logger.warning(
                "tool_call_failed",
                kind=exc.kind.value,
                error=exc.message,
                duration_ms=int(elapsed * 1000),
            )
            record_tool_call(registration.name, exc.kind.value, elapsed)
            raise

        elapsed = time.perf_counter() - start_time
        logger.info("tool_call_success", duration_ms=int(elapsed * 1000))
        record_tool_call(registration.name, "success", elapsed)
        return result
