"""Admin and utility commands."""

from typing import Annotated

import typer

import dynarecord
from dynarecord.cli.context import command_session

# Create admin subcommand group
app = typer.Typer(help="Database administration and utilities")


@app.command()
def init(
    ctx: typer.Context,
) -> None:
    """Initialize a database with the DynaRecord tables.

    Creates the metadata tables (dr_entity_definitions, dr_field_definitions,
    dr_audit_log) and the relational records table (dr_records).

    Examples:

        dynarecord admin init
        dynarecord --database postgresql://localhost/mydb admin init
    """
    with command_session(ctx) as (cli_ctx, formatter):
        # Creating the instance creates the tables
        cli_ctx.get_db()

        formatter.print_success(
            "Database initialized",
            {
                "database": cli_ctx.database_url,
                "version": dynarecord.__version__,
            },
        )


@app.command()
def health(
    ctx: typer.Context,
) -> None:
    """Check the metadata database and every storage backend.

    Exits with code 1 when any backend is unhealthy.
    """
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        report = db.health()

        if cli_ctx.json_output:
            formatter.print_data(report)
        else:
            rows = [{"Component": "metadata", "Healthy": "✓" if report["metadata"] else "✗"}]
            rows += [
                {"Component": name, "Healthy": "✓" if ok else "✗"}
                for name, ok in report["backends"].items()
            ]
            formatter.print_table(f"Health: {report['status']}", rows, ["Component", "Healthy"])

    if report["status"] != "ok":
        raise typer.Exit(code=1)


@app.command()
def routing(
    ctx: typer.Context,
    entity_name: Annotated[
        str | None,
        typer.Argument(help="Entity name (optional, shows the whole table if not specified)"),
    ] = None,
) -> None:
    """Show which storage backend serves each entity.

    Routes come from ROUTING_<ENTITY>=<backend> environment variables;
    unrouted entities use DYNARECORD_DEFAULT_BACKEND.

    Examples:

        dynarecord admin routing
        dynarecord admin routing Customer
    """
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()

        if entity_name:
            formatter.print_data(db.describe_routing(entity_name))
        else:
            rows = [db.describe_routing(name) for name in db.list_entities()]
            if cli_ctx.json_output:
                formatter.print_data(
                    {
                        "default_backend": db.routing.default_backend,
                        "backends": db.routing.available_backends(),
                        "entities": rows,
                    }
                )
            else:
                formatter.print_table(
                    f"Routing (default: {db.routing.default_backend})",
                    rows,
                    ["entity", "backend", "explicit"],
                )


@app.command()
def audit(
    ctx: typer.Context,
    entity_name: Annotated[
        str | None,
        typer.Option("--entity", "-e", help="Filter by entity name"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of entries"),
    ] = 20,
) -> None:
    """Show the schema audit log.

    Examples:

        dynarecord admin audit
        dynarecord admin audit --entity Customer --limit 10
    """
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        entries = db.get_audit_log(entity_name=entity_name, limit=limit)

        if cli_ctx.json_output:
            formatter.print_data([entry.model_dump(mode="json") for entry in entries])
        elif not entries:
            typer.echo("No audit entries found")
        else:
            typer.echo(f"\nSchema Audit Log ({len(entries)} entries):\n")
            for entry in entries:
                typer.echo(f"[{entry.timestamp}]")
                typer.echo(f"  Operation: {entry.operation}")
                typer.echo(f"  Entity: {entry.entity_name}")
                if entry.field_name:
                    typer.echo(f"  Field: {entry.field_name}")
                if entry.created_by:
                    typer.echo(f"  By: {entry.created_by}")
                if entry.reason:
                    typer.echo(f"  Reason: {entry.reason}")
                typer.echo("  ---")
