"""Tool registration system.

Tools are:
- Named, with a human description shown to the LLM
- Typed: parameters and return annotation define the JSON contract
- Independent: the registry never serializes calls to a tool
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, TypeVar, overload

from toolrt.config import DuplicatePolicy, Settings, get_settings
from toolrt.errors import DuplicateNameError, FunctionNotFoundError, RegistryFrozenError, ToolError
from toolrt.logging import get_logger
from toolrt.schemas.tools import (
    FunctionCall,
    FunctionDecl,
    FunctionResponse,
    OpaqueSignature,
    SchemaSignature,
    ToolCallResult,
)
from toolrt.signatures import describe
from toolrt.tools.declarations import build_declaration, build_declarations, to_openai_tools
from toolrt.tools.descriptors import ToolDescriptor, describe_callable, linked_registrations
from toolrt.tools.dispatch import ToolHandler, dispatch

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

CallPayload = FunctionCall | Mapping[str, Any] | str | bytes


@dataclass(frozen=True)
class ToolRegistration:
    """A registered tool."""

    name: str
    description: str
    handler: ToolHandler

    def input_signature(self, schema_enabled: bool = True) -> OpaqueSignature | SchemaSignature:
        """Signature of the tool's argument record."""
        return describe(self.handler.input_model, schema_enabled)

    def output_signature(self, schema_enabled: bool = True) -> OpaqueSignature | SchemaSignature:
        """Signature of the tool's return value."""
        return describe(self.handler.output_type, schema_enabled)

    def to_declaration(self, schema_enabled: bool = True) -> FunctionDecl:
        """Convert to an LLM-facing declaration."""
        return build_declaration(self, schema_enabled)

    async def invoke(self, arguments: Any) -> Any:
        """Invoke the tool with JSON arguments, bypassing logging and metrics."""
        return await self.handler.invoke(arguments)


class ToolRegistry:
    """Registry of callable tools.

    Provides:
    - Tool registration, directly or via decorator
    - Dispatch of JSON calls by name
    - Declarations describing every tool

    Mutate only during the registration phase; once populated (optionally
    ``freeze()``-ed) the registry is safe to read from concurrent calls.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.schema_enabled = settings.schema_enabled
        self.on_duplicate = settings.on_duplicate_registration
        self._tools: dict[str, ToolRegistration] = {}
        self._frozen = False

    @classmethod
    def from_linked_registrations(
        cls,
        descriptors: Iterable[ToolDescriptor] | None = None,
        settings: Settings | None = None,
    ) -> ToolRegistry:
        """Build a registry from descriptors gathered ahead of time.

        Args:
            descriptors: Descriptors to register; defaults to those collected by ``@tool``.
            settings: Settings to use instead of the environment-derived ones.

        Raises:
            DuplicateNameError: If two descriptors share a name under the error policy.
        """
        registry = cls(settings)
        for descriptor in linked_registrations if descriptors is None else descriptors:
            registry.add(descriptor)
        logger.info("tools_collected", tools=registry.list_names())
        return registry

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @overload
    def register(self, name: str, description: str, handler: Callable[..., Any]) -> ToolRegistration: ...

    @overload
    def register(self, name: str, description: str = "", handler: None = None) -> Callable[[F], F]: ...

    def register(
        self,
        name: str,
        description: str = "",
        handler: Callable[..., Any] | None = None,
    ) -> ToolRegistration | Callable[[F], F]:
        """Register ``handler`` under ``name``.

        Without a handler, returns a decorator:

            @registry.register("add", "Add two integers")
            async def add(pair: tuple[int, int]) -> int:
                return pair[0] + pair[1]

        Raises:
            DuplicateNameError: If ``name`` is taken and the policy is ``error``.
            RegistryFrozenError: If the registry has been frozen.
            TypeError: If the handler signature cannot be used as a tool.
        """
        if handler is None:

            def decorator(func: F) -> F:
                self.register(name, description, func)
                return func

            return decorator

        if not isinstance(name, str) or not name:
            raise ValueError("Tool name must be a non-empty string")
        if self._frozen:
            raise RegistryFrozenError(name)

        registration = ToolRegistration(
            name=name,
            description=description,
            handler=ToolHandler.from_callable(handler),
        )

        if name in self._tools:
            if self.on_duplicate is DuplicatePolicy.ERROR:
                raise DuplicateNameError(name)
            # Dict assignment keeps the original position
            logger.warning("tool_overwritten", tool_name=name)
        else:
            logger.debug("tool_registered", tool_name=name)

        self._tools[name] = registration
        return registration

    def add(self, descriptor: ToolDescriptor) -> ToolRegistration:
        """Register a descriptor."""
        return self.register(descriptor.name, descriptor.description, descriptor.handler)

    def tool(self, name: str | None = None, description: str | None = None) -> Callable[[F], F]:
        """Decorator to register a function on this registry.

        Usage:
            @registry.tool(description="Echo the input back")
            def echo(message: str) -> str:
                return message
        """

        def decorator(func: F) -> F:
            self.add(describe_callable(func, name=name, description=description))
            return func

        return decorator

    def unregister(self, name: str) -> None:
        """Remove a tool.

        Raises:
            FunctionNotFoundError: If no tool has that name.
            RegistryFrozenError: If the registry has been frozen.
        """
        if self._frozen:
            raise RegistryFrozenError(name)
        if self._tools.pop(name, None) is None:
            raise FunctionNotFoundError(name)
        logger.debug("tool_unregistered", tool_name=name)

    def freeze(self) -> None:
        """End the registration phase; later modifications raise."""
        self._frozen = True
        logger.debug("registry_frozen", tools=len(self._tools))

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> ToolRegistration | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_names(self) -> list[str]:
        """Names of all tools in registration order."""
        return list(self._tools)

    def list_tools(self) -> list[ToolRegistration]:
        """List all registered tools."""
        return list(self._tools.values())

    def descriptions(self) -> list[tuple[str, str]]:
        """``(name, description)`` pairs in registration order."""
        return [(reg.name, reg.description) for reg in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolRegistration]:
        return iter(list(self._tools.values()))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def call(self, call: CallPayload) -> Any:
        """Run a call and return the tool's JSON result.

        Args:
            call: A ``FunctionCall``, a mapping, or a raw JSON payload.

        Raises:
            ParseError: If a raw payload is not a valid call.
            FunctionNotFoundError: If the named tool is not registered.
            DeserializationError: If the arguments do not match the tool's parameters.
            HandlerError: If the tool itself failed.
            SerializationError: If the tool's output is not representable as JSON.
        """
        call = FunctionCall.parse(call)
        registration = self._tools.get(call.name)
        if registration is None:
            logger.warning("tool_not_found", tool_name=call.name, call_id=call.id)
            raise FunctionNotFoundError(call.name)

        return await dispatch(registration, call.arguments, call_id=call.id)

    async def respond(self, call: CallPayload) -> FunctionResponse:
        """Run a call and wrap the result with the call's id and name."""
        call = FunctionCall.parse(call)
        result = await self.call(call)
        return FunctionResponse(id=call.id, name=call.name, result=result)

    async def try_call(self, call: CallPayload) -> ToolCallResult:
        """Run a call, reporting any tool error in the result instead of raising."""
        name: str | None = None
        call_id: str | int | None = None
        try:
            call = FunctionCall.parse(call)
            name, call_id = call.name, call.id
            result = await self.call(call)
        except ToolError as exc:
            return ToolCallResult(name=name, id=call_id, error=exc.to_dict())
        return ToolCallResult(name=name, id=call_id, result=result)

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def declarations(self) -> list[FunctionDecl]:
        """Declarations for all tools, in registration order.

        Raises:
            SchemaError: If any tool's types cannot be described.
        """
        return build_declarations(self._tools.values(), self.schema_enabled)

    def json(self) -> list[dict[str, Any]]:
        """Declarations in their JSON wire shape."""
        return [decl.model_dump() for decl in self.declarations()]

    def openai_tools(self) -> list[dict[str, Any]]:
        """Declarations in the OpenAI ``tools`` request shape."""
        return to_openai_tools(self.declarations())


@lru_cache
def get_tool_registry() -> ToolRegistry:
    """Process-wide registry, built from ``@tool`` descriptors on first use."""
    registry = ToolRegistry.from_linked_registrations()
    registry.freeze()
    return registry
