"""Main CLI entry point."""

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .analyze import analyze, status

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="issue-correlator",
    help="Correlate GitHub issues with community solutions and precedents",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging"
    ),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


app.command(name="analyze", context_settings={"help_option_names": ["-h", "--help"]})(
    analyze
)
app.command(name="status", context_settings={"help_option_names": ["-h", "--help"]})(
    status
)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from issue_correlator import __version__

    console.print(f"Issue Correlator v{__version__}")


if __name__ == "__main__":
    app()
