"""CLI interface for toolrt.

Provides commands for:
- Listing tools collected from modules
- Printing their declarations
- Dispatching a single call
"""

import asyncio
import importlib
import json
import sys

import click

from toolrt import __version__
from toolrt.config import Settings, get_settings
from toolrt.errors import ToolError
from toolrt.logging import configure_logging
from toolrt.metrics import metrics
from toolrt.tools.registry import ToolRegistry

_module_option = click.option(
    "--module",
    "-m",
    "modules",
    multiple=True,
    help="Module to import; its @tool functions are registered (repeatable)",
)


def _load_registry(modules: tuple[str, ...], settings: Settings | None = None) -> ToolRegistry:
    for name in modules:
        try:
            importlib.import_module(name)
        except ImportError as exc:
            raise click.ClickException(f"Could not import module '{name}': {exc}") from exc
    try:
        return ToolRegistry.from_linked_registrations(settings=settings)
    except ToolError as exc:
        raise click.ClickException(exc.message) from exc


def _echo_json(value: object) -> None:
    click.echo(json.dumps(value, indent=2))


@click.group()
@click.version_option(version=__version__, prog_name="toolrt")
@click.option("--debug", is_flag=True, help="Human-readable debug logging")
def cli(debug: bool) -> None:
    """toolrt - JSON tool runtime.

    Registers typed Python functions as tools, describes them for LLMs
    and dispatches JSON calls to them.
    """
    settings = get_settings()
    debug = debug or settings.debug
    configure_logging(
        json_format=not debug,
        level="DEBUG" if debug else settings.log_level,
    )


@cli.command("list")
@_module_option
def list_tools(modules: tuple[str, ...]) -> None:
    """List all registered tools."""
    registry = _load_registry(modules)

    if not len(registry):
        click.echo("No tools registered.")
        return

    click.echo(f"Registered tools ({len(registry)}):\n")

    for name, description in registry.descriptions():
        click.echo(f"  {click.style(name, fg='green', bold=True)}")
        if description:
            click.echo(f"    {description.splitlines()[0]}")
        params = registry.get(name).handler.parameter_names
        if params:
            click.echo(f"    Parameters: {', '.join(params)}")
        click.echo()


@cli.command()
@_module_option
@click.option("--no-schema", is_flag=True, help="Emit opaque type names instead of JSON Schema")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["native", "openai"]),
    default="native",
    show_default=True,
    help="Declaration layout",
)
def declarations(modules: tuple[str, ...], no_schema: bool, output_format: str) -> None:
    """Print tool declarations as JSON."""
    settings = get_settings()
    if no_schema:
        settings = settings.model_copy(update={"schema_enabled": False})
    registry = _load_registry(modules, settings)

    try:
        if output_format == "openai":
            _echo_json(registry.openai_tools())
        else:
            _echo_json(registry.json())
    except ToolError as exc:
        raise click.ClickException(exc.message) from exc


@cli.command()
@_module_option
@click.option(
    "--metrics",
    "metrics_format",
    type=click.Choice(["json", "prometheus"]),
    default=None,
    help="Also print call metrics to stderr",
)
@click.argument("payload")
def call(modules: tuple[str, ...], metrics_format: str | None, payload: str) -> None:
    """Dispatch a call and print its JSON result.

    PAYLOAD is a JSON object {"name": ..., "arguments": ...}; use '-' to
    read it from stdin. On failure the error object is printed and the
    exit code is 1. With --metrics the call counters and latencies follow
    on stderr.
    """
    if payload == "-":
        payload = click.get_text_stream("stdin").read()

    registry = _load_registry(modules)
    outcome = asyncio.run(registry.try_call(payload))

    if metrics_format == "prometheus":
        click.echo(metrics.to_prometheus(), err=True)
    elif metrics_format == "json":
        click.echo(json.dumps(metrics.get_stats(), indent=2), err=True)

    if outcome.error is not None:
        _echo_json(outcome.error)
        sys.exit(1)
    _echo_json(outcome.result)


@cli.command()
def info() -> None:
    """Show runtime configuration."""
    settings = get_settings()

    click.echo("toolrt configuration:\n")
    click.echo(f"  Schema enabled:     {settings.schema_enabled}")
    click.echo(f"  Duplicate policy:   {settings.on_duplicate_registration.value}")
    click.echo(f"  Debug:              {settings.debug}")
    click.echo(f"  Log level:          {settings.log_level}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
