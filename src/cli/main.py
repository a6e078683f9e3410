"""CLI commands for the composition proxy."""

import asyncio
import logging
import sys
from pathlib import Path

import click
import structlog
import yaml
from pydantic import ValidationError

from src.config.constants import COMPONENT_CLI
from src.config.error_hints import format_validation_error
from src.config.loader import ConfigLoader
from src.config.schemas import ProxyConfig
from src.fetch.client import HttpContentFetcher
from src.observability.logging import configure_logging
from src.proxy.controller import CompositionController, CompositionResult
from src.proxy.handlers import HandlerRegistry
from src.proxy.models import ProxyRequest
from src.proxy.response import ContentEmitter, ProxyResponse
from src.settings import get_settings
from src.templating.renderer import TemplateRenderer


logger = structlog.get_logger()

HTTP_STATUS_ERROR_MIN = 400


def _parse_header_options(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``Name: value`` options into a header mapping."""
    headers: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            msg = f"Invalid header '{raw}', expected 'Name: value'"
            raise click.BadParameter(msg, param_hint="--header")
        headers[name.strip().lower()] = value.strip()
    return headers


def _resolve_config_path(config_path: Path | None) -> Path:
    """Use the option, else ``CXPROXY_CONFIG_PATH``."""
    resolved = config_path or get_settings().config_path
    if resolved is None:
        msg = "No configuration given; pass --config or set CXPROXY_CONFIG_PATH"
        raise click.UsageError(msg)
    return resolved


def _load_config_or_exit(config_path: Path) -> ProxyConfig:
    """Load configuration, printing hinted errors and exiting on failure."""
    loader = ConfigLoader()
    try:
        return loader.load(config_path)
    except (ValidationError, FileNotFoundError, yaml.YAMLError):
        click.echo("Configuration validation failed:", err=True)
        for error in loader.validation_errors:
            formatted = format_validation_error(
                location=error["loc"],
                message=error["msg"],
                error_type=error.get("type", "unknown"),
                include_hint=True,
            )
            click.echo(f"  - {formatted}", err=True)
        sys.exit(1)


async def _compose_once(
    config: ProxyConfig,
    request: ProxyRequest,
    render_content: bool,
) -> tuple[ProxyResponse, CompositionResult]:
    """Run one request through a controller backed by the HTTP fetcher."""
    response = ProxyResponse()
    emitter = ContentEmitter(renderer=TemplateRenderer() if render_content else None)
    async with HttpContentFetcher(
        retry_policy=config.fetch.retry_policy,
        user_agent=config.fetch.user_agent,
        max_cache_entries=config.fetch.max_cache_entries,
    ) as fetcher:
        controller = CompositionController(config, fetcher, emitter=emitter)
        result = await controller.handle(request, response)
    return response, result


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Fragment-composition proxy."""


@cli.command()
@click.argument("url")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to the proxy YAML configuration (or CXPROXY_CONFIG_PATH).",
)
@click.option("--method", default="GET", show_default=True, help="HTTP method.")
@click.option(
    "--header",
    "-H",
    "header_values",
    multiple=True,
    help="Inbound request header as 'Name: value' (repeatable).",
)
@click.option("--no-cache", is_flag=True, help="Bypass the fetch cache.")
@click.option(
    "--render-content",
    is_flag=True,
    help="Render the final content as a template against template variables.",
)
@click.option("--show-headers", is_flag=True, help="Print response headers.")
@click.option("--json-logs/--no-json-logs", default=None, help="Log format.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def compose(  # noqa: PLR0913
    url: str,
    config_path: Path | None,
    method: str,
    header_values: tuple[str, ...],
    no_cache: bool,
    render_content: bool,
    show_headers: bool,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Compose the page for URL (path and query) and print it."""
    settings = get_settings()
    configure_logging(
        level=logging.DEBUG if verbose else settings.log_level_number,
        json_format=settings.json_logs if json_logs is None else json_logs,
    )
    config = _load_config_or_exit(_resolve_config_path(config_path))

    request = ProxyRequest.from_raw(
        method=method,
        url=url,
        headers=_parse_header_options(header_values),
        remote_address="127.0.0.1",
    )
    request.explicit_no_cache = no_cache

    response, result = asyncio.run(_compose_once(config, request, render_content))

    logger.info(
        "compose_complete",
        component=COMPONENT_CLI,
        url=url,
        state=result.state.value,
        recovery_action=(
            result.recovery_action.value if result.recovery_action else None
        ),
        status_code=response.status_code,
    )

    if show_headers:
        click.echo(f"HTTP {response.status_code}", err=True)
        for name, value in sorted(response.headers.items()):
            click.echo(f"{name}: {value}", err=True)
    click.echo(response.body)

    if response.status_code >= HTTP_STATUS_ERROR_MIN:
        sys.exit(1)


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to the proxy YAML configuration (or CXPROXY_CONFIG_PATH).",
)
def validate(config_path: Path | None) -> None:
    """Validate the proxy configuration without fetching anything."""
    configure_logging(json_format=False)
    resolved = _resolve_config_path(config_path)
    config = _load_config_or_exit(resolved)

    click.echo("Configuration is valid!")
    click.echo(f"  Backends: {len(config.backends)}")
    for backend in config.backends:
        click.echo(f"    - {backend.name}: {backend.pattern} -> {backend.target}")
    click.echo(f"  Status code handlers: {len(config.status_code_handlers)}")
    registry = HandlerRegistry()
    for status_code, entry in sorted(config.status_code_handlers.items()):
        marker = "" if entry.fn in registry else " (not a built-in handler)"
        click.echo(f"    - {status_code}: {entry.fn}{marker}")
    click.echo(f"  Extension posts: {'on' if config.enable_extension else 'off'}")


if __name__ == "__main__":
    cli()
