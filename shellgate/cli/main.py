"""CLI for shellgate."""

import click
from rich.console import Console
from rich.table import Table

from shellgate import __version__

console = Console()


@click.group()
@click.version_option(version=__version__)
def cli():
    """shellgate - Browser-based SSH session gateway."""
    pass


@cli.command()
@click.option("--host", "-h", default=None, help="Host to bind to (default from config)")
@click.option("--port", "-p", default=None, type=int, help="Port to listen on (default from config)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str | None, port: int | None, reload: bool):
    """Start the shellgate server."""
    import uvicorn

    from shellgate.config import Config, ConfigError
    from shellgate.utils.logging import setup_logging

    # Validate config before starting
    try:
        config = Config.load()
        console.print("[green]Configuration loaded successfully[/green]")
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\nCheck ~/.config/shellgate/config.yaml and SHELLGATE_* environment variables")
        raise SystemExit(1)

    setup_logging(config)

    host = host or config.host
    port = port or config.port

    if not config.known_hosts:
        console.print("[yellow]Warning:[/yellow] No known_hosts file configured")
        console.print("SSH host keys will not be verified (set SHELLGATE_KNOWN_HOSTS)")

    console.print("\n[cyan]Starting shellgate server...[/cyan]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  WebSocket: ws://localhost:{port}/ws/ssh")
    console.print(f"  Sessions:  http://localhost:{port}/api/sessions")
    console.print("\nPress Ctrl+C to stop\n")

    uvicorn.run(
        "shellgate.server.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


@cli.command()
def check():
    """Check configuration and dependencies."""
    console.print("[cyan]Checking shellgate configuration...[/cyan]\n")

    try:
        import asyncssh

        console.print(f"[green]✓[/green] asyncssh {asyncssh.__version__}")
    except ImportError:
        console.print("[red]✗[/red] asyncssh not installed")

    from shellgate.config import Config, ConfigError

    try:
        config = Config.load()
        console.print("[green]✓[/green] Configuration valid")

        if config.known_hosts:
            console.print(f"[green]✓[/green] Host keys verified against {config.known_hosts}")
        else:
            console.print("[yellow]![/yellow] No known_hosts file (host keys not verified)")

        console.print(
            f"[green]✓[/green] Idle sessions closed after {config.inactivity_timeout_minutes:g} min "
            f"(checked every {config.cleanup_interval_seconds:g}s)"
        )

    except ConfigError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")


@cli.command()
@click.option("--url", "-u", default="http://localhost:8080", help="Base URL of a running server")
def sessions(url: str):
    """List active SSH sessions on a running server."""
    import httpx

    try:
        response = httpx.get(f"{url.rstrip('/')}/api/sessions", timeout=10)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]Failed to fetch sessions:[/red] {e}")
        raise SystemExit(1)

    data = response.json()
    if not data["sessions"]:
        console.print("[dim]No active sessions[/dim]")
        return

    table = Table(title=f"Active sessions ({data['total']})")
    table.add_column("Session")
    table.add_column("Client")
    table.add_column("Target")
    table.add_column("Status")
    table.add_column("Connected at")
    table.add_column("Last activity")

    for s in data["sessions"]:
        status_style = "green" if s["connected"] else "yellow"
        table.add_row(
            s["session_id"][:8],
            s["client_id"][:8],
            f"{s['username']}@{s['host']}:{s['port']}",
            f"[{status_style}]{s['status']}[/{status_style}]",
            s["connected_at"] or "-",
            s["last_activity"],
        )

    console.print(table)


if __name__ == "__main__":
    cli()
