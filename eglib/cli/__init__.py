"""Easy Genomics CLI using Typer."""

import typer
from rich.console import Console

from eglib.cli.files import files_app
from eglib.cli.server import server_app

console = Console()

app = typer.Typer(
    name="eg",
    help="Easy Genomics - laboratory file tools",
    add_completion=True,
    no_args_is_help=True,
)

app.add_typer(files_app, name="files", help="Browse laboratory storage")
app.add_typer(server_app, name="server", help="API server management")


@app.command("version")
def version():
    """Show the installed version."""
    from eglib import __version__
    console.print(f"eg [cyan]{__version__}[/cyan]")


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    raise SystemExit(main())
