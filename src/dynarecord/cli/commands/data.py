"""Data CRUD commands."""

from typing import Annotated

import typer

from dynarecord.cli.context import command_session
from dynarecord.cli.parsing import parse_json_object, read_json_file, read_jsonl_file

# Create data subcommand group
app = typer.Typer(help="Manage entity records (CRUD operations)")


@app.command("list")
def data_list(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    page: Annotated[int, typer.Option("--page", "-p", help="Page number (1-based)")] = 1,
    page_size: Annotated[
        int, typer.Option("--page-size", "-s", help="Records per page (max 100)")
    ] = 10,
) -> None:
    """List records, newest first.

    Examples:

        dynarecord data list Customer
        dynarecord data list Customer --page 2 --page-size 25
    """
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        formatter.print_page(entity_name, db.list_records(entity_name, page, page_size))


@app.command("get")
def data_get(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    record_id: Annotated[str, typer.Argument(help="Record ID")],
) -> None:
    """Get a record by ID."""
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        formatter.print_record(db.get_record(entity_name, record_id))


@app.command("insert")
def data_insert(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    data_json: Annotated[
        str | None,
        typer.Argument(help="Record data as JSON string"),
    ] = None,
    from_file: Annotated[
        str | None,
        typer.Option("--from-file", "-f", help="Load data from JSON/JSONL file"),
    ] = None,
    batch: Annotated[
        bool,
        typer.Option("--batch", help="Insert every line of a JSONL file"),
    ] = False,
) -> None:
    """Insert record(s) into an entity.

    Examples:

        dynarecord data insert Product '{"productName": "Mouse", "price": 29.99}'
        dynarecord data insert Product --from-file product.json
        dynarecord data insert Product --from-file products.jsonl --batch
    """
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()

        if from_file and batch:
            # Stops at the first invalid line; earlier lines stay inserted
            ids = [db.create_record(entity_name, data).id for data in read_jsonl_file(from_file)]
            formatter.print_success(
                f"Inserted {len(ids)} records", {"count": len(ids), "ids": ids[:5]}
            )
            return

        if from_file:
            data = read_json_file(from_file)
        elif data_json:
            data = parse_json_object(data_json)
        else:
            raise typer.BadParameter("Either provide data as JSON string or use --from-file")

        record = db.create_record(entity_name, data)
        formatter.print_success("Inserted record", {"id": record.id})


@app.command("update")
def data_update(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    record_id: Annotated[str, typer.Argument(help="Record ID")],
    data_json: Annotated[str, typer.Argument(help="Fields to change, as JSON")],
) -> None:
    """Update a record. Only the given fields change.

    Examples:

        dynarecord data update Customer <record-id> '{"status": "inactive"}'
    """
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        record = db.update_record(entity_name, record_id, parse_json_object(data_json))
        formatter.print_success("Record updated", {"id": record.id})
        if not cli_ctx.json_output:
            formatter.print_record(record)


@app.command("delete")
def data_delete(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    record_id: Annotated[str, typer.Argument(help="Record ID")],
    hard: Annotated[
        bool,
        typer.Option("--hard", help="Permanent delete (default: soft delete)"),
    ] = False,
) -> None:
    """Delete a record.

    Examples:

        dynarecord data delete Customer 550e8400-e29b-41d4-a716-446655440000
        dynarecord data delete Customer 550e8400-e29b-41d4-a716-446655440000 --hard
    """
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        if hard:
            db.purge_record(entity_name, record_id)
            formatter.print_success(f"Record purged: {record_id}")
        else:
            db.delete_record(entity_name, record_id)
            formatter.print_success(f"Record deleted: {record_id}")
