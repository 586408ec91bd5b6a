"""Schema management commands.

Entities and fields are soft-deleted, so the records they describe stay in
their backend; only validation and lookup stop.
"""

from typing import Annotated, Any

import typer

from dynarecord.cli.context import CLIContext, command_session
from dynarecord.cli.parsing import parse_field_spec, parse_json_object, read_json_file
from dynarecord.core.types import EntitySpec

app = typer.Typer(help="Manage entity schemas")

CreatedBy = Annotated[
    str | None, typer.Option("--created-by", help="Creator identifier for audit trail")
]
Reason = Annotated[str | None, typer.Option("--reason", help="Reason recorded in the audit log")]
Force = Annotated[bool, typer.Option("--force", help="Skip confirmation prompt")]


def _confirmed(cli_ctx: CLIContext, force: bool, question: str) -> bool:
    # JSON mode never prompts
    if force or cli_ctx.json_output or typer.confirm(question):
        return True
    typer.echo("Cancelled.")
    return False


def _entity_spec(
    name: str | None,
    fields: list[str] | None,
    from_file: str | None,
    overrides: dict[str, Any],
) -> EntitySpec:
    """Merge a schema file with command-line values; the command line wins."""
    data: dict[str, Any] = read_json_file(from_file) if from_file else {}
    if name:
        data["name"] = name
    if fields:
        data["fields"] = [parse_field_spec(spec) for spec in fields]
    data.update({key: value for key, value in overrides.items() if value is not None})
    return EntitySpec.model_validate(data)


@app.command("list")
def schema_list(ctx: typer.Context) -> None:
    """List active entities with their storage target and backend."""
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        names = db.list_entities()
        if cli_ctx.json_output:
            formatter.print_data(names)
            return

        rows = []
        for entity in map(db.describe_entity, names):
            rows.append(
                {
                    "Name": entity.name,
                    "Fields": len(entity.fields),
                    "Target": entity.storage_target,
                    "Backend": db.routing.backend_for(entity.name),
                }
            )
        formatter.print_table(
            f"Entities ({len(names)} total)", rows, ["Name", "Fields", "Target", "Backend"]
        )


@app.command("describe")
def schema_describe(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name (case-sensitive)")],
) -> None:
    """Show an entity and its active fields in display order."""
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        formatter.print_entity_info(db.describe_entity(entity_name))
        if not cli_ctx.json_output:
            typer.echo(f"Backend: {db.routing.backend_for(entity_name)}")


@app.command("create")
def schema_create(
    ctx: typer.Context,
    name: Annotated[
        str | None,
        typer.Argument(help="Entity name (e.g., Customer); optional with --from-file"),
    ] = None,
    fields: Annotated[
        list[str] | None,
        typer.Option("--field", "-f", help="Field as name:type[:modifier]. Repeatable."),
    ] = None,
    from_file: Annotated[
        str | None,
        typer.Option("--from-file", help="JSON entity definition (name, fields, ...)"),
    ] = None,
    display_name: Annotated[str | None, typer.Option("--display-name")] = None,
    description: Annotated[str | None, typer.Option("--description")] = None,
    storage_target: Annotated[
        str | None,
        typer.Option("--target", help="Table/collection key (default: snake_case of the name)"),
    ] = None,
    created_by: CreatedBy = None,
) -> None:
    """Create an entity.

    Examples:

        dynarecord schema create Product --field "productName:string:required:max=255" \\
            --field "price:decimal:required"

        dynarecord schema create --from-file customer.json --target crm_customers
    """
    with command_session(ctx) as (cli_ctx, formatter):
        spec = _entity_spec(
            name,
            fields,
            from_file,
            {
                "display_name": display_name,
                "description": description,
                "storage_target": storage_target,
            },
        )
        entity = cli_ctx.get_db().create_entity(
            spec.name,
            fields=list(spec.fields) or None,
            display_name=spec.display_name,
            storage_target=spec.storage_target,
            description=spec.description,
            created_by=created_by,
        )
        formatter.print_success(
            f"Entity '{entity.name}' created",
            {
                "name": entity.name,
                "storage_target": entity.storage_target,
                "fields": len(entity.fields),
            },
        )


@app.command("drop")
def schema_drop(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    reason: Reason = None,
    force: Force = False,
    created_by: CreatedBy = None,
) -> None:
    """Drop an entity. Its records stay stored but become unreachable."""
    with command_session(ctx) as (cli_ctx, formatter):
        db = cli_ctx.get_db()
        entity = db.describe_entity(entity_name)
        location = f"{db.routing.backend_for(entity.name)}:{entity.storage_target}"
        if not _confirmed(
            cli_ctx, force, f"Drop entity '{entity.name}'? Records in {location} become unreachable"
        ):
            return

        db.drop_entity(entity.name, created_by=created_by, reason=reason)
        formatter.print_success(
            f"Entity '{entity.name}' dropped", {"storage_target": entity.storage_target}
        )


@app.command("add-field")
def schema_add_field(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    field_spec: Annotated[
        str,
        typer.Argument(help="name:type[:modifier], or a JSON field definition"),
    ],
    position: Annotated[
        int | None,
        typer.Option("--position", help="Display order (default: after the last field)"),
    ] = None,
    reason: Reason = None,
    created_by: CreatedBy = None,
) -> None:
    """Add a field. Validation picks it up on the next write.

    Examples:

        dynarecord schema add-field Customer "phone:string:max=20"
        dynarecord schema add-field Customer '{"name": "tier", "type": "enum",
            "options": [{"value": "gold", "label": "Gold"}]}'
    """
    with command_session(ctx) as (cli_ctx, formatter):
        if field_spec.lstrip().startswith("{"):
            definition = parse_json_object(field_spec)
        else:
            definition = parse_field_spec(field_spec)
        if position is not None:
            definition["display_order"] = position

        field = cli_ctx.get_db().add_field(
            entity_name, definition, created_by=created_by, reason=reason
        )
        formatter.print_success(
            f"Field '{field.name}' added to '{entity_name}'",
            {"field": field.name, "type": field.type, "display_order": field.display_order},
        )


@app.command("drop-field")
def schema_drop_field(
    ctx: typer.Context,
    entity_name: Annotated[str, typer.Argument(help="Entity name")],
    field_name: Annotated[str, typer.Argument(help="Field name to drop")],
    reason: Reason = None,
    created_by: CreatedBy = None,
    force: Force = False,
) -> None:
    """Drop a field.

    Stored values under its key are kept and pass through as unknown keys.
    """
    with command_session(ctx) as (cli_ctx, formatter):
        if not _confirmed(cli_ctx, force, f"Stop validating '{entity_name}.{field_name}'?"):
            return

        cli_ctx.get_db().drop_field(entity_name, field_name, created_by=created_by, reason=reason)
        formatter.print_success(
            f"Field '{field_name}' dropped from '{entity_name}'",
            {"field": field_name, "entity": entity_name},
        )
