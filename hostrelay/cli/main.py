"""hostrelay CLI.

Usage:
    hostrelay serve            Start the relay (HTTP + WebSocket on port 3001)
    hostrelay version          Show the installed version
    hostrelay config show      Show the resolved configuration (secrets masked)
    hostrelay config validate  Validate a config file without starting
"""

import logging
from typing import Optional

import typer
from rich.console import Console

from hostrelay import __version__
from hostrelay.config import RelayConfig, load_config

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="hostrelay",
    help="Relay between the browser UI and the agent host",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to hostrelay.yaml config file"
    ),
):
    """hostrelay: task reconciliation and live fan-out for the agent host."""
    global _config_path
    _config_path = config


def _mask(secret: str) -> str:
    if not secret:
        return "(not set)"
    return "***" + secret[-4:] if len(secret) > 8 else "***"


def _load_or_exit() -> RelayConfig:
    try:
        return load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except (ValueError, TypeError) as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


# --- Version ---


@app.command()
def version():
    """Show hostrelay version."""
    console.print(f"[bold]hostrelay[/bold] v{__version__}")


# --- Serve ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level"),
):
    """Start the relay server with uvicorn."""
    import uvicorn

    from hostrelay.api.main import create_app

    cfg = _load_or_exit()
    if host:
        cfg.server.host = host
    if port:
        cfg.server.port = port
    if log_level:
        cfg.server.log_level = log_level

    _log.info("Relay starting on %s:%d", cfg.server.host, cfg.server.port)
    console.print(
        f"[bold]hostrelay[/bold] listening on "
        f"http://{cfg.server.host}:{cfg.server.port} (host: {cfg.host.base_url})"
    )
    uvicorn.run(
        create_app(cfg),
        host=cfg.server.host,
        port=cfg.server.port,
        log_level=cfg.server.log_level.lower(),
        lifespan="on",
    )


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    from hostrelay.db.connection import resolve_database_url

    cfg = _load_or_exit()

    console.print("[bold]Server:[/bold]")
    console.print(f"  host: {cfg.server.host}")
    console.print(f"  port: {cfg.server.port}")
    console.print(f"  log_level: {cfg.server.log_level}")
    origins = ", ".join(cfg.server.allowed_origins) or "(same-origin only)"
    console.print(f"  allowed_origins: {origins}")

    console.print("\n[bold]Host:[/bold]")
    console.print(f"  base_url: {cfg.host.base_url}")
    console.print(f"  api_key: {_mask(cfg.host.api_key)}")
    console.print(f"  timeout: {cfg.host.timeout_seconds}s")

    console.print("\n[bold]Store:[/bold]")
    console.print(f"  database_url: {resolve_database_url(cfg.store.database_url)}")

    console.print("\n[bold]Fan-out:[/bold]")
    console.print(f"  max_pending_messages: {cfg.fanout.max_pending_messages}")
    console.print(f"  ping_interval: {cfg.fanout.ping_interval_seconds}s")


@config_app.command("validate")
def config_validate(
    config: Optional[str] = typer.Option(None, "--config", help="Config file path"),
):
    """Validate a config file without starting the relay."""
    global _config_path
    if config:
        _config_path = config
    cfg = _load_or_exit()
    console.print("[green]Config is valid.[/green]")
    console.print(f"  Host: {cfg.host.base_url}")
    console.print(f"  Port: {cfg.server.port}")


if __name__ == "__main__":
    app()
