"""CLI context management for database connections and shared state."""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

import typer

from dynarecord import DynaRecord
from dynarecord.cli.output import OutputFormatter
from dynarecord.core.config import DEFAULT_DATABASE_URL, Settings


def get_database_url(url: str | None) -> str:
    """Resolve database URL from CLI arg, environment variable, or default.

    Priority:
    1. Explicit URL argument
    2. DYNARECORD_DATABASE_URL environment variable
    3. Default: sqlite:///./dynarecord.db
    """
    if url:
        return url
    if env_url := os.getenv("DYNARECORD_DATABASE_URL"):
        return env_url
    return DEFAULT_DATABASE_URL


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Manages database connection lifecycle and output preferences. Routing and
    the document backend come from the environment.
    """

    database_url: str
    echo: bool
    json_output: bool
    _db: DynaRecord | None = field(default=None, init=False, repr=False)

    def get_db(self) -> DynaRecord:
        """Get or create the DynaRecord instance (lazy initialization)."""
        if self._db is None:
            settings = Settings.from_env().model_copy(
                update={"database_url": self.database_url, "echo": self.echo}
            )
            self._db = DynaRecord(settings=settings)
        return self._db

    def close(self) -> None:
        """Close database connection if open."""
        if self._db is not None:
            self._db.close()
            self._db = None


@contextmanager
def command_session(ctx: typer.Context) -> Iterator[tuple[CLIContext, OutputFormatter]]:
    """Run one command against the database.

    Any failure is printed through the formatter and ends the command with
    exit code 1; the connection is closed either way.
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)
    try:
        yield cli_ctx, formatter
    except (typer.Exit, typer.Abort):
        raise
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1) from e
    finally:
        cli_ctx.close()
