"""Command-line entry point: configure, connect, then serve MCP over stdio.

Usage:
    fogbugz-mcp <fogbugz-url> <api-key>
    fogbugz-mcp                                  # FOGBUGZ_URL / FOGBUGZ_API_KEY from env or .env
    fogbugz-mcp --log-file ~/.fogbugz-mcp.log    # Also keep a rotating JSONL log
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click

from fogbugz_mcp import __version__
from fogbugz_mcp.client import FogBugzClient
from fogbugz_mcp.config import ENV_API_KEY, ENV_URL, TrackerConfig, load_config, load_dotenv_file
from fogbugz_mcp.errors import ConfigError, FogBugzError
from fogbugz_mcp.logging import setup_logging
from fogbugz_mcp.mcp_server import Dispatcher, install_signal_handlers, serve_stdio

logger = logging.getLogger(__name__)


async def _run(config: TrackerConfig, *, check_identity: bool = True) -> None:
    async with FogBugzClient.from_config(config) as client:
        if check_identity:
            user = await client.get_current_user()
            name = user.get("sPerson") or user.get("sFullName")
            logger.info("Connected to FogBugz as %s (%s)", name, user.get("sEmail"))
        install_signal_handlers()
        logger.info("MCP server started, waiting for requests...")
        await serve_stdio(Dispatcher(client, call_timeout=config.call_timeout))


@click.command()
@click.version_option(version=__version__, prog_name="fogbugz-mcp")
@click.argument("url", required=False)
@click.argument("api_key", required=False)
@click.option("--timeout", type=float, default=None, help="HTTP timeout in seconds for FogBugz requests (default: 30)")
@click.option(
    "--call-timeout",
    type=float,
    default=None,
    help="Upper bound in seconds for one tool call, 0 to disable (default: 120)",
)
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Also write JSONL logs here")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Log level for stderr/file logs (default: INFO)",
)
@click.option("--skip-identity-check", is_flag=True, help="Do not call viewPerson before serving")
def main(
    url: str | None,
    api_key: str | None,
    timeout: float | None,
    call_timeout: float | None,
    log_file: Path | None,
    log_level: str | None,
    skip_identity_check: bool,
) -> None:
    """FogBugz MCP server: JSON-RPC over stdin/stdout."""
    load_dotenv_file()
    try:
        config = load_config(
            url,
            api_key,
            timeout=timeout,
            call_timeout=call_timeout,
            log_file=log_file,
            log_level=log_level,
        )
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Usage: fogbugz-mcp <fogbugz-url> <api-key>", err=True)
        click.echo(f"       or set {ENV_URL} and {ENV_API_KEY} environment variables", err=True)
        sys.exit(1)

    setup_logging(log_file=config.log_file, level=config.log_level)
    logger.info("Starting FogBugz MCP server", extra={"args_data": {"url": config.base_url}})

    try:
        asyncio.run(_run(config, check_identity=not skip_identity_check))
    except FogBugzError as e:
        logger.error("Error initializing FogBugz API", extra={"error": str(e)})
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
