"""redis-target CLI.

Issues single commands against a server through the command API.

Usage:
    redis-target ping                         # PING
    redis-target get greeting                 # GET greeting
    redis-target set greeting hi --px 2.5     # SET greeting hi PX 2500
    redis-target keys 'user:*'                # KEYS user:*
    redis-target scan-all --match 'user:*'    # SCAN until the cursor returns to 0
    redis-target ttl greeting                 # TTL greeting

Connection defaults come from REDIS_HOST / REDIS_PORT.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import click

from .api import RedisCommands
from .errors import RedisCommandError
from .protocol.commands import SetMode
from .protocol.values import RESPValue
from .transport import BaseConnection, create_stream_connection

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def format_reply(value: Any) -> str:
    """Format a command result for display."""
    if isinstance(value, RESPValue):
        text = value.string_value
        return text if text is not None else value.describe()
    if isinstance(value, list):
        return "\n".join(str(v) for v in value)
    return str(value)


def _open_connection(ctx: click.Context) -> BaseConnection:
    return create_stream_connection(host=ctx.obj["host"], port=ctx.obj["port"])


def _run(ctx: click.Context, operation: Callable[[RedisCommands], Awaitable[Any]]) -> None:
    """Connect, run one operation, print its result and disconnect."""

    async def runner() -> Any:
        async with _open_connection(ctx) as connection:
            return await operation(RedisCommands(connection))

    try:
        result = asyncio.run(runner())
    except RedisCommandError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if result is not None:
        click.echo(format_reply(result))


@click.group()
@click.option("--host", default=None, help="Server host (default: REDIS_HOST or localhost)")
@click.option("--port", default=None, type=int, help="Server port (default: REDIS_PORT or 6379)")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level (logs go to stderr)",
)
@click.pass_context
def main(ctx: click.Context, host: str | None, port: int | None, log_level: str) -> None:
    """Send typed commands to a Redis-compatible server."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["host"] = host
    ctx.obj["port"] = port


@main.command()
@click.argument("message", required=False)
@click.pass_context
def ping(ctx: click.Context, message: str | None) -> None:
    """Ping the server."""
    _run(ctx, lambda commands: commands.ping(message))


@main.command()
@click.argument("key")
@click.pass_context
def get(ctx: click.Context, key: str) -> None:
    """Get the value of KEY."""
    _run(ctx, lambda commands: commands.get(key))


@main.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--px", "expire", type=float, default=None, help="Expire after SECONDS")
@click.option("--nx", "if_missing", is_flag=True, help="Only set if KEY does not exist")
@click.option("--xx", "if_existing", is_flag=True, help="Only set if KEY exists")
@click.pass_context
def set_command(
    ctx: click.Context,
    key: str,
    value: str,
    expire: float | None,
    if_missing: bool,
    if_existing: bool,
) -> None:
    """Set KEY to VALUE."""
    if if_missing and if_existing:
        raise click.UsageError("--nx and --xx are mutually exclusive")

    mode = SetMode.ALWAYS
    if if_missing:
        mode = SetMode.IF_MISSING
    elif if_existing:
        mode = SetMode.IF_EXISTING

    _run(ctx, lambda commands: commands.set(key, value, expire=expire, mode=mode))


@main.command()
@click.argument("pattern", default="*")
@click.pass_context
def keys(ctx: click.Context, pattern: str) -> None:
    """List keys matching PATTERN."""
    _run(ctx, lambda commands: commands.keys(pattern))


@main.command("scan-all")
@click.option("--match", "pattern", default=None, help="Only keys matching this pattern")
@click.option("--count", type=int, default=None, help="Page size hint")
@click.pass_context
def scan_all(ctx: click.Context, pattern: str | None, count: int | None) -> None:
    """Print every key, one SCAN page at a time."""

    def on_page(page: list[str]) -> None:
        for key in page:
            click.echo(key)

    async def operation(commands: RedisCommands) -> None:
        await commands.scan_all(pattern, count, on_page=on_page)

    _run(ctx, operation)


@main.command()
@click.argument("key")
@click.pass_context
def ttl(ctx: click.Context, key: str) -> None:
    """Show the remaining time to live of KEY in seconds."""
    _run(ctx, lambda commands: commands.ttl(key))


if __name__ == "__main__":
    main()
