"""DynaRecord CLI - Main entry point."""

import logging
import sys
from typing import Annotated

import typer

import dynarecord
from dynarecord.cli.context import CLIContext, get_database_url

# Create main Typer app
app = typer.Typer(
    name="dynarecord",
    help="DynaRecord CLI - Metadata-driven dynamic record store",
    no_args_is_help=True,
)

# Store CLI context globally (will be set in callback)
state: dict[str, CLIContext] = {}


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="DYNARECORD_DATABASE_URL",
            help="Metadata database URL (SQLite, PostgreSQL or MySQL)",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            envvar="DYNARECORD_LOG_LEVEL",
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
        ),
    ] = "WARNING",
) -> None:
    """Initialize CLI context with global options."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cli_ctx = CLIContext(
        database_url=get_database_url(database),
        echo=echo,
        json_output=json_output,
    )

    # Store in Typer context for command access
    ctx.obj = cli_ctx
    state["cli_ctx"] = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"DynaRecord v{dynarecord.__version__}")


# Register command groups
from dynarecord.cli.commands import admin, data, schema  # noqa: E402

app.add_typer(schema.app, name="schema")
app.add_typer(data.app, name="data")
app.add_typer(admin.app, name="admin")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
