"""CLI commands for one-off gateway calls."""

import asyncio
import json
import logging
import sys
import uuid
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import click
import structlog
from pydantic import BaseModel

from cosmic_gateway.capabilities.gateway import SpaceDataGateway
from cosmic_gateway.fetch.models import (
    BinaryPayload,
    DispatchOptions,
    GatewayError,
    ResponseKind,
)
from cosmic_gateway.observability.logging import bind_request_context, configure_logging
from cosmic_gateway.settings.app import AppSettings, get_settings
from cosmic_gateway.status.error_mapper import to_http_response


logger = structlog.get_logger()

T = TypeVar("T")


def build_gateway(settings: AppSettings) -> SpaceDataGateway:
    """Build the gateway used by every command."""
    return SpaceDataGateway.from_settings(settings)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a gateway coroutine, exiting with the mapped error on failure."""
    try:
        return asyncio.run(coro)
    except GatewayError as e:
        _fail(e)


def _fail(error: GatewayError) -> NoReturn:
    status, body = to_http_response(error)
    body["http_status"] = status
    click.echo(json.dumps(body, indent=2), err=True)
    sys.exit(1)


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BinaryPayload):
        return {
            "shape": value.shape,
            "content_type": value.content_type,
            "bytes": len(value.content),
        }
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if isinstance(value, list):
        return [_to_jsonable(item) for item in value]
    return value


def _emit(value: Any) -> None:
    click.echo(json.dumps(_to_jsonable(value), indent=2, ensure_ascii=False))


def _parse_params(pairs: tuple[str, ...]) -> dict[str, str]:
    params: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            msg = f"Expected NAME=VALUE, got '{pair}'"
            raise click.BadParameter(msg, param_hint="--param")
        params[name] = value
    return params


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--json-logs/--console-logs",
    default=None,
    help="Log format (default from LOG_JSON).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, json_logs: bool | None) -> None:
    """Space data gateway CLI."""
    settings = get_settings()
    level = logging.DEBUG if verbose else settings.log_level_value
    configure_logging(
        level=level,
        json_format=settings.log_json if json_logs is None else json_logs,
    )
    bind_request_context(uuid.uuid4().hex[:12])
    if settings.uses_demo_key:
        logger.warning("demo_api_key_in_use", component="cli")
    ctx.obj = settings


@cli.command()
@click.argument("endpoint")
@click.option(
    "--param",
    "-p",
    "params",
    multiple=True,
    help="Query parameter as NAME=VALUE (repeatable).",
)
@click.option("--skip-api-key", is_flag=True, help="Do not send the API key.")
@click.option(
    "--kind",
    "response_kind",
    type=click.Choice([kind.value for kind in ResponseKind], case_sensitive=False),
    help="Override the expected response shape.",
)
@click.option("--timeout-ms", type=click.IntRange(min=1), help="Per-attempt timeout.")
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a binary body to this file.",
)
@click.pass_obj
def fetch(  # noqa: PLR0913
    settings: AppSettings,
    endpoint: str,
    params: tuple[str, ...],
    skip_api_key: bool,
    response_kind: str | None,
    timeout_ms: int | None,
    output_path: Path | None,
) -> None:
    """Dispatch one call to ENDPOINT (absolute URL or API path)."""
    options = DispatchOptions(
        timeout_ms=timeout_ms,
        skip_api_key=skip_api_key,
        response_kind=ResponseKind(response_kind.upper()) if response_kind else None,
    )
    gateway = build_gateway(settings)
    result = _run(
        gateway.dispatcher.dispatch(endpoint, _parse_params(params), options)
    )

    if isinstance(result, BinaryPayload) and output_path is not None:
        output_path.write_bytes(result.content)
        click.echo(f"Wrote {len(result.content)} bytes to {output_path}")
        return
    _emit(result)


@cli.command()
@click.option("--lat", "latitude", type=float, required=True, help="Latitude.")
@click.option("--lon", "longitude", type=float, required=True, help="Longitude.")
@click.option("--dim", type=float, default=0.15, show_default=True, help="Width.")
@click.option("--date", help="Date as YYYY-MM-DD.")
@click.pass_obj
def imagery(
    settings: AppSettings,
    latitude: float,
    longitude: float,
    dim: float,
    date: str | None,
) -> None:
    """Get Earth imagery for a position, with fallbacks."""
    gateway = build_gateway(settings)
    _emit(_run(gateway.earth_imagery(latitude, longitude, dim=dim, date=date)))


@cli.command()
@click.argument("category")
@click.option("--limit", type=click.IntRange(min=1), help="Show at most N results.")
@click.pass_obj
def satellites(settings: AppSettings, category: str, limit: int | None) -> None:
    """List orbital elements for a satellite CATEGORY."""
    gateway = build_gateway(settings)
    elements = _run(gateway.satellites_by_category(category))
    _emit(elements[:limit] if limit else elements)


if __name__ == "__main__":
    cli()
