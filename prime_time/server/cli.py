from __future__ import annotations

import json
import signal
import sys
from typing import Any

import click
from loguru import logger
from pydantic import ValidationError

from prime_time import __version__
from prime_time.core.config import ServerSettings, load_settings
from prime_time.server.client import PrimeTimeClient
from prime_time.server.constants import DEFAULT_PORT
from prime_time.server.listener import ListenerError, PrimeTimeServer


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def configure_logging(settings: ServerSettings) -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    if settings.log_file:
        try:
            logger.add(
                settings.log_file,
                level=settings.log_level,
                rotation="10 MB",
                retention="7 days",
            )
        except (OSError, ValueError) as exc:
            logger.warning(f"Failed to configure log file {settings.log_file}: {exc}")


def _install_signal_handlers(server: PrimeTimeServer) -> None:
    def _handle(sig, _frame):  # type: ignore[no-untyped-def]
        logger.info(f"Received signal {sig}; shutting down")
        server.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handle)
        except ValueError:
            # Not on the main thread.
            continue


@click.group(name="prime-time", help="Prime Time: line-delimited JSON primality service.")
@click.version_option(__version__, prog_name="prime-time")
def prime_time_cli() -> None:
    pass


@prime_time_cli.command(name="serve", help="Run the server in the foreground.")
@click.option("--config", "config_path", default=None, help="Path to config.json.")
@click.option("--host", default=None, help="Bind address.  [default: 0.0.0.0]")
@click.option("--port", type=int, default=None, help=f"Bind port.  [default: {DEFAULT_PORT}]")
@click.option("--max-line-bytes", type=int, default=None)
@click.option(
    "--idle-timeout-seconds",
    type=float,
    default=None,
    help="Drop connections idle this long (off by default).",
)
@click.option(
    "--malformed-reply",
    default=None,
    help="Line sent before disconnecting on malformed input; '' sends nothing.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
)
@click.option("--log-file", default=None)
def serve_cmd(
    config_path: str | None,
    host: str | None,
    port: int | None,
    max_line_bytes: int | None,
    idle_timeout_seconds: float | None,
    malformed_reply: str | None,
    log_level: str | None,
    log_file: str | None,
) -> None:
    try:
        settings = load_settings(
            config_path,
            host=host,
            port=port,
            max_line_bytes=max_line_bytes,
            idle_timeout_seconds=idle_timeout_seconds,
            malformed_reply=malformed_reply,
            log_level=log_level,
            log_file=log_file,
        )
    except ValidationError as exc:
        raise click.UsageError(f"Invalid server settings:\n{exc}") from exc

    configure_logging(settings)

    server = PrimeTimeServer(settings=settings)
    _install_signal_handlers(server)
    try:
        server.serve_forever()
    except ListenerError as exc:
        logger.error(f"Listener error ({exc.code}): {exc.message}")
        sys.exit(1)


@prime_time_cli.command(name="check", help="Ask a running server whether numbers are prime.")
@click.argument("numbers", nargs=-1, required=True)
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=DEFAULT_PORT, show_default=True)
@click.option("--timeout", "timeout_s", type=float, default=5.0, show_default=True)
def check_cmd(numbers: tuple[str, ...], host: str, port: int, timeout_s: float) -> None:
    client = PrimeTimeClient(host=host, port=port, timeout_s=timeout_s)
    results = client.check_many(numbers)
    _echo_json([{"number": n, **r} for n, r in zip(numbers, results, strict=True)])
    if not all(r.get("ok") for r in results):
        sys.exit(1)
