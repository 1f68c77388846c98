"""discord-relay CLI — run the relay, mint dev tokens, inspect channels.

Usage:
    discord-relay serve                          # Run the relay with uvicorn
    discord-relay token 1234 alice               # Mint a development JWT
    discord-relay channels --token <jwt>         # List channels via the HTTP API
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("RELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: str) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(
        base_url=_api_url(),
        timeout=30.0,
        headers={"Authorization": f"Bearer {token}"},
    )


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="discord-relay", prog_name="discord-relay")
def main():
    """discord-relay — fan Discord channel events out to WebSocket clients."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: RELAY_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: RELAY_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the relay server."""
    import uvicorn

    from discord_relay.config import settings

    uvicorn.run(
        "discord_relay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        ws_ping_interval=settings.ws_ping_interval,
        ws_ping_timeout=settings.ws_ping_timeout,
        log_config=None,  # structlog owns the root logger
    )


@main.command()
@click.argument("discord_id")
@click.argument("username")
@click.option("--display-name", help="Display name claim (defaults to USERNAME)")
@click.option("--expires", "expires_minutes", type=int, help="Lifetime in minutes")
def token(discord_id: str, username: str, display_name: Optional[str],
          expires_minutes: Optional[int]):
    """Mint a development JWT for DISCORD_ID / USERNAME."""
    from discord_relay.auth.jwt import create_access_token

    click.echo(create_access_token(
        discord_id,
        username,
        display_name=display_name,
        expires_minutes=expires_minutes,
    ))


@main.command()
@click.option("--token", "jwt_token", envvar="RELAY_TOKEN", required=True,
              help="Bearer token (or set RELAY_TOKEN)")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def channels(jwt_token: str, as_json: bool):
    """List the Discord channels the token's user can access."""
    result = asyncio.run(_channels_impl(jwt_token))

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    if result.get("status") != "succeed":
        click.secho(f"Error: {result.get('message', 'request failed')}", fg="red", err=True)
        sys.exit(1)

    rows = result.get("data") or []
    if not rows:
        click.echo("No accessible channels.")
        return

    click.secho(f"Channels ({len(rows)}):", bold=True)
    click.echo()
    _print_table(rows, [
        ("ID", "id", 20),
        ("Server", "serverName", 20),
        ("Name", "name", 30),
    ])


async def _channels_impl(jwt_token: str) -> dict:
    async with _client(jwt_token) as c:
        r = await c.get("/api/v1/discord/channels")
        if r.status_code == 401:
            return {"status": "failed", "data": [], "message": r.json().get("detail", "Unauthorized")}
        r.raise_for_status()
        return r.json()
