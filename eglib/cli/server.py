"""Server management commands for the Easy Genomics CLI."""

import os
from typing import Optional

import typer
from rich.console import Console

server_app = typer.Typer(help="API server management commands")
console = Console()


def _require_auth_config() -> None:
    """Fail fast if auth is requested without Cognito settings."""
    from eglib.config import clear_settings_cache, get_settings

    clear_settings_cache()
    settings = get_settings()
    missing = []
    if not settings.cognito_user_pool_id:
        missing.append("COGNITO_USER_POOL_ID")
    if not settings.cognito_app_client_id:
        missing.append("COGNITO_APP_CLIENT_ID")
    if missing:
        console.print("[red]✗[/red]  Authentication enabled but Cognito config is missing")
        console.print("   Missing: [cyan]" + ", ".join(missing) + "[/cyan]")
        raise typer.Exit(1)


@server_app.command("run")
def run(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to run the server on (defaults to API_PORT)"),
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind to (defaults to API_HOST)"),
    auth: bool = typer.Option(True, "--auth/--no-auth", help="Require Cognito ID tokens"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
):
    """Run the file API in the foreground."""
    import uvicorn

    from eglib.config import get_settings

    settings = get_settings()
    if port is None:
        port = settings.api_port
    if host is None:
        host = settings.api_host

    os.environ["ENABLE_AUTH"] = "true" if auth else "false"
    if auth:
        _require_auth_config()
        console.print("[green]✓[/green]  Authentication ENABLED")
    else:
        console.print("[yellow]⚠[/yellow]  Authentication DISABLED")

    console.print(f"Serving on [cyan]http://{host}:{port}[/cyan]")
    uvicorn.run(
        "eglib.api:create_app_from_settings",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )
