"""Command-line interface for the CIP Shopee webhook service."""

from __future__ import annotations

import json
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from cip_shopee import __version__
from cip_shopee.utils.logging import setup_logging


app = typer.Typer(
    name="cip-shopee",
    help="Shopee push (webhook) ingestion service for CIP Shopee",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"cip-shopee v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Bind address"),  # noqa: S104
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the webhook API with uvicorn."""
    import uvicorn

    from cip_shopee.utils.config import get_settings

    settings = get_settings()
    setup_logging(level=settings.log_level, json_format=settings.log_json)

    uvicorn.run(
        "cip_shopee.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def sign(
    url: str = typer.Argument(..., help="Webhook URL the push is sent to"),
    payload: Path | None = typer.Option(
        None, "--payload", "-f", help="JSON file with the push body"
    ),
    code: int = typer.Option(0, "--code", "-c", help="Event code when no file given"),
    partner_key: str | None = typer.Option(
        None,
        "--partner-key",
        "-k",
        envvar="WEBHOOK_PARTNER_KEY",
        help="Push partner key (defaults to WEBHOOK_PARTNER_KEY)",
    ),
) -> None:
    """Compute the Authorization signature for a test push."""
    from cip_shopee.webhooks.signature import build_base_string, compute_signature

    if not partner_key:
        console.print("[red]No partner key: pass --partner-key or set WEBHOOK_PARTNER_KEY[/red]")
        raise typer.Exit(code=1)

    if payload is not None:
        body = payload.read_bytes()
    else:
        body = json.dumps(
            {"code": code, "timestamp": int(time.time())}, separators=(",", ":")
        ).encode("utf-8")

    signature = compute_signature(partner_key, url, body)
    base_string = build_base_string(url, body)

    table = Table(title="Shopee push signature")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white", overflow="fold")
    table.add_row("Base string length", str(len(base_string)))
    table.add_row("Body", body.decode("utf-8", errors="replace"))
    table.add_row("Authorization", signature)
    console.print(table)


@app.command()
def generate_key(
    prefix: str = typer.Option("cip", "--prefix", help="Key prefix"),
) -> None:
    """Generate an API key for the operational endpoints."""
    from cip_shopee.api.auth import APIKeyManager

    key = APIKeyManager.generate_key(prefix=prefix)
    console.print(f"Generated API Key: [green]{key}[/green]")
    console.print("Add this to your .env file:")
    console.print(f'API_KEYS="{key}"')


if __name__ == "__main__":
    app()
