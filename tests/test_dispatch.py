"""Tests for dispatching JSON calls to tools."""

import asyncio
import logging
import threading
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from toolrt.errors import (
    DeserializationError,
    FunctionNotFoundError,
    HandlerError,
    ParseError,
    SerializationError,
    ToolErrorKind,
)
from toolrt.metrics import metrics
from toolrt.schemas import FunctionCall
from toolrt.tools.dispatch import ToolHandler


class Order(BaseModel):
    item: str
    quantity: int = 1


class Filters(BaseModel):
    query: str
    limit: int | None


@dataclass
class Point:
    x: int
    label: str | None


async def add(pair: tuple[int, int]) -> int:
    """Add two integers."""
    return pair[0] + pair[1]


def greet(name: str) -> str:
    return f"Hello, {name}!"


@pytest.fixture
def math_registry(registry):
    """Registry with the add and greet tools."""
    registry.register("add", "Add two integers", add)
    registry.register("greet", "Greet someone", greet)
    return registry


class TestToolHandler:
    """Tests for handler wrapping."""

    def test_parameters_form_input_record(self):
        """Each parameter becomes a field of the input record."""
        handler = ToolHandler.from_callable(add)
        assert list(handler.input_model.model_fields) == ["pair"]
        assert handler.output_type is int
        assert handler.is_async

    def test_sync_handler(self):
        """Plain functions are wrapped as sync handlers."""
        handler = ToolHandler.from_callable(greet)
        assert not handler.is_async

    def test_variadic_handler_rejected(self):
        """*args and **kwargs have no record shape."""

        def loose(*args, **kwargs):
            return None

        with pytest.raises(TypeError, match="cannot take"):
            ToolHandler.from_callable(loose)

    def test_optional_parameter_defaults_to_none(self):
        """Optional parameters may be omitted."""

        def search(text: str, limit: int | None) -> list[str]:
            return [text] * (limit or 1)

        handler = ToolHandler.from_callable(search)
        args, kwargs = handler.bind({"text": "x"})
        assert args == []
        assert kwargs == {"text": "x", "limit": None}

    def test_positional_only_parameters(self):
        """Positional-only parameters are passed positionally."""

        def scale(value: float, /, factor: float = 2.0) -> float:
            return value * factor

        handler = ToolHandler.from_callable(scale)
        args, kwargs = handler.bind({"value": 1.5})
        assert args == [1.5]
        assert kwargs == {"factor": 2.0}

    @pytest.mark.asyncio
    async def test_callable_instance(self):
        """Objects with a typed __call__ work as handlers."""

        class Multiplier:
            def __init__(self, factor):
                self.factor = factor

            def __call__(self, value: int) -> int:
                return value * self.factor

        handler = ToolHandler.from_callable(Multiplier(3))
        assert await handler.invoke({"value": 4}) == 12

    @pytest.mark.asyncio
    async def test_reserved_parameter_names(self, registry):
        """Names pydantic reserves still work as parameter names."""

        def configure(_hidden: int, model_config: str = "x", json: bool = False) -> str:
            return f"{_hidden}-{model_config}-{json}"

        registration = registry.register("configure", "", configure)
        assert registration.handler.parameter_names == ["_hidden", "model_config", "json"]
        assert registration.input_signature().to_wire() == {
            "type": "object",
            "properties": {
                "_hidden": {"type": "integer"},
                "model_config": {"type": "string"},
                "json": {"type": "boolean"},
            },
            "required": ["_hidden"],
        }

        call = {"name": "configure", "arguments": {"_hidden": 3, "model_config": "y"}}
        assert await registry.call(call) == "3-y-False"
        with pytest.raises(DeserializationError):
            await registry.call({"name": "configure", "arguments": {}})


class TestOptionalRecordFields:
    """Tests for Optional fields inside record arguments."""

    @pytest.mark.asyncio
    async def test_model_field_may_be_omitted(self, registry):
        """A field left out of required is accepted when omitted."""

        def search(filters: Filters) -> str:
            return f"{filters.query}:{filters.limit}"

        registration = registry.register("search", "", search)
        schema = registration.input_signature().to_wire()
        assert schema["properties"]["filters"]["required"] == ["query"]

        assert await registry.call({"name": "search", "arguments": {"filters": {"query": "a"}}}) == "a:None"
        result = await registry.call({"name": "search", "arguments": {"filters": {"query": "a", "limit": 5}}})
        assert result == "a:5"

    @pytest.mark.asyncio
    async def test_dataclass_field_in_list(self, registry):
        """Records nested in containers are handled too."""

        def labels(points: list[Point]) -> list[str | None]:
            return [point.label for point in points]

        registry.register("labels", "", labels)
        arguments = {"points": [{"x": 1}, {"x": 2, "label": "b"}]}
        assert await registry.call({"name": "labels", "arguments": arguments}) == [None, "b"]
        assert arguments == {"points": [{"x": 1}, {"x": 2, "label": "b"}]}

    @pytest.mark.asyncio
    async def test_required_fields_still_enforced(self, registry):
        def search(filters: Filters) -> str:
            return filters.query

        registry.register("search", "", search)
        with pytest.raises(DeserializationError):
            await registry.call({"name": "search", "arguments": {"filters": {"limit": 1}}})


class TestDispatch:
    """Tests for ToolRegistry.call."""

    @pytest.mark.asyncio
    async def test_call_tool(self, math_registry):
        """A call's arguments are decoded into the handler's parameters."""
        result = await math_registry.call({"name": "add", "arguments": {"pair": [3, 4]}})
        assert result == 7

    @pytest.mark.asyncio
    async def test_call_from_raw_json(self, math_registry):
        """Raw JSON payloads are parsed before dispatch."""
        result = await math_registry.call('{"name": "greet", "arguments": {"name": "Ada"}}')
        assert result == "Hello, Ada!"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, math_registry):
        """Calling an unregistered name fails with the name."""
        with pytest.raises(FunctionNotFoundError) as exc_info:
            await math_registry.call({"name": "missing", "arguments": {}})
        assert exc_info.value.name == "missing"
        assert str(exc_info.value) == "Tool function 'missing' not found"

    @pytest.mark.asyncio
    async def test_mismatched_arguments(self, math_registry):
        """Arguments of the wrong shape are reported, not coerced."""
        with pytest.raises(DeserializationError) as exc_info:
            await math_registry.call({"name": "greet", "arguments": {"pair": [3, 4]}})

        error = exc_info.value
        assert error.arguments == {"pair": [3, 4]}
        assert error.errors[0]["loc"] == ["name"]
        assert error.errors[0]["type"] == "missing"

    @pytest.mark.asyncio
    async def test_wrong_argument_type(self, math_registry):
        """A value of the wrong type names its location."""
        with pytest.raises(DeserializationError) as exc_info:
            await math_registry.call({"name": "add", "arguments": {"pair": ["x", 4]}})
        assert exc_info.value.errors[0]["loc"] == ["pair", 0]

    @pytest.mark.asyncio
    async def test_non_object_arguments(self, math_registry):
        """Arguments must be an object when the tool takes parameters."""
        with pytest.raises(DeserializationError):
            await math_registry.call({"name": "add", "arguments": [3, 4]})

    @pytest.mark.asyncio
    async def test_zero_argument_tool(self, registry):
        """Tools without parameters accept empty or null arguments."""

        @registry.tool()
        def ping() -> str:
            return "pong"

        assert await registry.call({"name": "ping", "arguments": {}}) == "pong"
        assert await registry.call({"name": "ping"}) == "pong"

    @pytest.mark.asyncio
    async def test_record_argument(self, registry):
        """Nested records are validated and passed as models."""

        @registry.tool()
        def place(order: Order) -> dict[str, int]:
            return {order.item: order.quantity}

        result = await registry.call({"name": "place", "arguments": {"order": {"item": "tea"}}})
        assert result == {"tea": 1}

    @pytest.mark.asyncio
    async def test_record_result(self, registry):
        """Returned models are converted to JSON objects."""

        @registry.tool()
        def reorder(item: str) -> Order:
            return Order(item=item, quantity=2)

        assert await registry.call({"name": "reorder", "arguments": {"item": "tea"}}) == {
            "item": "tea",
            "quantity": 2,
        }

    @pytest.mark.asyncio
    async def test_handler_failure(self, registry):
        """Exceptions raised by a tool are reported as handler errors."""

        @registry.tool()
        def divide(a: float, b: float) -> float:
            return a / b

        with pytest.raises(HandlerError) as exc_info:
            await registry.call({"name": "divide", "arguments": {"a": 1, "b": 0}})
        assert "division by zero" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)

    @pytest.mark.asyncio
    async def test_non_finite_result(self, registry):
        """NaN has no JSON representation."""

        @registry.tool()
        def not_a_number() -> float:
            return float("nan")

        with pytest.raises(SerializationError):
            await registry.call({"name": "not_a_number", "arguments": {}})

    @pytest.mark.asyncio
    async def test_cyclic_result(self, registry):
        """Self-referencing output cannot be serialized."""

        @registry.tool()
        def cycle():
            data = {}
            data["self"] = data
            return data

        with pytest.raises(SerializationError):
            await registry.call({"name": "cycle", "arguments": {}})

    @pytest.mark.asyncio
    async def test_parse_error(self, math_registry):
        """Payloads without a name never reach a tool."""
        with pytest.raises(ParseError, match="missing field 'name'"):
            await math_registry.call({"arguments": {"pair": [1, 2]}})

        with pytest.raises(ParseError, match="invalid JSON"):
            await math_registry.call("{not json")


class TestConcurrency:
    """Tests for concurrent dispatch."""

    @pytest.mark.asyncio
    async def test_calls_do_not_block_each_other(self, registry):
        """An awaiting tool does not hold up other calls."""
        gate = asyncio.Event()

        @registry.tool()
        async def wait_for_gate() -> str:
            await gate.wait()
            return "released"

        @registry.tool()
        async def open_gate() -> str:
            gate.set()
            return "opened"

        results = await asyncio.wait_for(
            asyncio.gather(
                registry.call({"name": "wait_for_gate"}),
                registry.call({"name": "open_gate"}),
            ),
            timeout=5,
        )
        assert results == ["released", "opened"]

    @pytest.mark.asyncio
    async def test_sync_tools_run_off_the_event_loop(self, registry):
        """A blocking sync tool leaves the event loop free."""
        released = threading.Event()

        @registry.tool()
        def blocking() -> bool:
            return released.wait(timeout=5)

        @registry.tool()
        async def release() -> None:
            released.set()

        results = await asyncio.gather(
            registry.call({"name": "blocking"}),
            registry.call({"name": "release"}),
        )
        assert results == [True, None]

    @pytest.mark.asyncio
    async def test_same_tool_concurrently(self, math_registry):
        """Concurrent calls to one tool keep their own arguments."""
        calls = [
            math_registry.call({"name": "add", "arguments": {"pair": [n, n]}})
            for n in range(20)
        ]
        assert await asyncio.gather(*calls) == [n * 2 for n in range(20)]


class TestResponses:
    """Tests for respond and try_call."""

    @pytest.mark.asyncio
    async def test_respond_echoes_id(self, math_registry):
        """The response carries the call's id and name."""
        call = FunctionCall(name="add", arguments={"pair": [1, 2]}, id="call-1")
        response = await math_registry.respond(call)
        assert response.model_dump() == {"id": "call-1", "name": "add", "result": 3}

    @pytest.mark.asyncio
    async def test_numeric_id(self, math_registry):
        """Numeric call ids are accepted and echoed unchanged."""
        response = await math_registry.respond('{"name": "add", "arguments": {"pair": [1, 2]}, "id": 7}')
        assert response.id == 7
        outcome = await math_registry.try_call({"name": "missing", "id": 8})
        assert outcome.id == 8

    @pytest.mark.asyncio
    async def test_try_call_success(self, math_registry):
        """try_call returns results."""
        outcome = await math_registry.try_call({"name": "add", "arguments": {"pair": [2, 2]}})
        assert outcome.ok
        assert outcome.result == 4

    @pytest.mark.asyncio
    async def test_try_call_reports_errors(self, math_registry):
        """try_call turns tool errors into error objects."""
        outcome = await math_registry.try_call({"name": "missing", "id": "c2"})
        assert not outcome.ok
        assert outcome.id == "c2"
        assert outcome.error == {
            "kind": "function_not_found",
            "message": "Tool function 'missing' not found",
            "name": "missing",
        }

    @pytest.mark.asyncio
    async def test_try_call_parse_failure(self, math_registry):
        """Unparseable payloads produce an error with no name."""
        outcome = await math_registry.try_call("[]")
        assert outcome.name is None
        assert outcome.error["kind"] == ToolErrorKind.PARSE.value


class TestDispatchMetrics:
    """Tests for call metrics."""

    @pytest.mark.asyncio
    async def test_outcomes_are_counted(self, math_registry):
        """Successes and failures are counted per tool."""
        await math_registry.call({"name": "add", "arguments": {"pair": [1, 1]}})
        with pytest.raises(DeserializationError):
            await math_registry.call({"name": "add", "arguments": {}})

        counters = metrics.get_stats()["counters"]["toolrt_tool_calls_total"]
        assert counters['status="success",tool="add"'] == 1
        assert counters['status="deserialization",tool="add"'] == 1

    @pytest.mark.asyncio
    async def test_latency_is_observed(self, math_registry):
        """Each dispatched call records a duration."""
        await math_registry.call({"name": "greet", "arguments": {"name": "x"}})
        histograms = metrics.get_stats()["histograms"]["toolrt_tool_duration_seconds"]
        assert histograms['tool="greet"']["count"] == 1


class TestDispatchLogging:
    """Tests for call logging."""

    @pytest.mark.asyncio
    async def test_logs_go_through_stdlib_logging(self, math_registry, capsys, caplog):
        """Call events reach the stdlib logger and never stdout."""
        caplog.set_level(logging.INFO, logger="toolrt")
        await math_registry.call({"name": "add", "arguments": {"pair": [1, 2]}, "id": "c1"})

        assert capsys.readouterr().out == ""
        assert any("tool_call_success" in message for message in caplog.messages)
