"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dynarecord.core.types import EntityInfo, PaginatedRecords, StoredRecord
from dynarecord.exceptions import DynaRecordError, ValidationError

console = Console()


def _dump(data: Any) -> str:
    return json.dumps(data, default=str, indent=2)


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print data as Rich table or JSON array."""
        if self.json_mode:
            print(_dump(data))
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*[str(row.get(col, "")) for col in columns])
            console.print(table)

    def print_entity_info(self, entity: EntityInfo) -> None:
        """Print entity information with its fields."""
        if self.json_mode:
            print(_dump(entity.model_dump(mode="json")))
            return

        console.print(f"\n[bold]Entity:[/bold] {entity.name}")
        if entity.display_name != entity.name:
            console.print(f"Display name: {entity.display_name}")
        console.print(f"Storage target: {entity.storage_target}")
        if entity.description:
            console.print(f"Description: {entity.description}")
        if entity.created_at:
            console.print(f"Created: {entity.created_at}")

        if entity.fields:
            console.print(f"\n[bold]Fields ({len(entity.fields)}):[/bold]")
            fields_table = Table(show_header=True, header_style="bold cyan")
            for column in ("Name", "Type", "Required", "Length", "Pattern", "Options"):
                fields_table.add_column(column)

            for field in entity.fields:
                length = ""
                if field.min_length is not None or field.max_length is not None:
                    length = f"{field.min_length or 0}..{field.max_length or ''}"
                options = ""
                if field.options:
                    try:
                        options = ", ".join(str(o["value"]) for o in json.loads(field.options))
                    except (ValueError, TypeError, KeyError):
                        options = field.options
                fields_table.add_row(
                    field.name,
                    field.type,
                    "✓" if field.required else "",
                    length,
                    field.pattern or "",
                    options,
                )
            console.print(fields_table)

    def print_record(self, record: StoredRecord) -> None:
        """Print one record."""
        if self.json_mode:
            print(_dump(record.model_dump(mode="json")))
        else:
            console.print(f"[bold]ID:[/bold] {record.id}")
            console.print(f"Created: {record.created_at}  Updated: {record.updated_at}")
            console.print_json(_dump(record.data))

    def print_page(self, entity_name: str, page: PaginatedRecords) -> None:
        """Print a page of records."""
        if self.json_mode:
            print(_dump(page.model_dump(mode="json")))
            return

        if not page.records:
            console.print(f"No records found for {entity_name}")
            return
        console.print(
            f"\nRecords for {entity_name}: page {page.page}/{page.total_pages} "
            f"({page.total} total)\n"
        )
        for record in page.records:
            self.print_record(record)
            console.print("---")

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message."""
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(_dump(output))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print error message."""
        if self.json_mode:
            if isinstance(error, DynaRecordError):
                print(_dump(error.to_dict()))
            else:
                print(_dump({"error": str(error)}))
            return

        error_text = str(error)
        if isinstance(error, ValidationError):
            error_text = "\n".join([error_text, *(f"- {m}" for m in error.messages)])
        elif isinstance(error, DynaRecordError) and error.context:
            context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
            error_text = f"{error_text}\n\n{context_str}"

        console.print(Panel(error_text, title="[red]Error[/red]", border_style="red"))

    def print_data(self, data: Any) -> None:
        """Print generic data (dict, list, etc.)."""
        if self.json_mode:
            print(_dump(data))
        else:
            console.print_json(_dump(data))
