"""Output formatting for the CredGuard CLI.

Every command prints one backend result (a verdict, an issuance outcome,
a credential status, ...) in one of three formats:

- json: compact camelCase JSON on stdout (default, for piping)
- pretty: the same JSON, indented
- table: rich tables, one per nested section of the result

Errors always go to stderr as JSON, whatever the format.
"""

import json
import sys
from enum import Enum
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Result fields whose False value is a problem worth highlighting.
_CHECK_FIELDS = frozenset({"valid", "issuerTrusted", "signatureValid", "notExpired", "success", "active"})

# List fields that hold problems rather than data.
_PROBLEM_FIELDS = frozenset({"errors"})


class OutputFormat(str, Enum):
    """Output format options."""

    json = "json"
    pretty = "pretty"
    table = "table"


def output_json(data: Any, pretty: bool = False) -> None:
    """Print data as JSON to stdout."""
    indent = 2 if pretty else None
    try:
        print(json.dumps(data, indent=indent, default=str))
    except TypeError as e:
        typer.echo(f"Error serializing output: {e}", err=True)
        raise typer.Exit(2) from e


def _is_scalar_list(value: Any) -> bool:
    return isinstance(value, list) and all(not isinstance(item, (dict, list)) for item in value)


def _cell(key: str, value: Any) -> str:
    """Render one scalar field as rich markup."""
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, bool):
        if key in _CHECK_FIELDS:
            return "[green]yes[/green]" if value else "[bold red]no[/bold red]"
        return "yes" if value else "no"
    if isinstance(value, list):
        if not value:
            return "[dim]none[/dim]"
        style = "red" if key in _PROBLEM_FIELDS else None
        lines = [escape(str(item)) for item in value]
        text = "\n".join(lines)
        return f"[{style}]{text}[/{style}]" if style else text
    return escape(str(value))


def render_tables(data: dict[str, Any], title: Optional[str] = None) -> list[Table]:
    """Split one result into rich tables.

    Scalar fields and lists of scalars (errors, warnings, credential
    types) share a field/value table. Each nested object, such as the
    ``document``, ``credential`` or ``issuance`` section of an outcome,
    gets its own table titled by its path. Empty nested objects are
    skipped.
    """
    tables: list[Table] = []
    fields = Table(title=title, show_header=True, header_style="bold")
    fields.add_column("field")
    fields.add_column("value", overflow="fold")
    nested: list[tuple[str, Any]] = []

    for key, value in data.items():
        if isinstance(value, dict):
            nested.append((key, value))
        elif isinstance(value, list) and not _is_scalar_list(value):
            nested.append((key, value))
        else:
            fields.add_row(key, _cell(key, value))

    if fields.row_count:
        tables.append(fields)

    for key, value in nested:
        section = f"{title}: {key}" if title else key
        if isinstance(value, dict):
            if value:
                tables.extend(render_tables(value, section))
            continue
        for index, item in enumerate(value):
            if isinstance(item, dict):
                tables.extend(render_tables(item, f"{section} #{index + 1}"))
    return tables


def output(
    data: Any,
    format: OutputFormat = OutputFormat.json,
    table_title: Optional[str] = None,
) -> None:
    """Print a command result in the requested format."""
    if format == OutputFormat.json:
        output_json(data, pretty=False)
    elif format == OutputFormat.pretty:
        output_json(data, pretty=True)
    elif format == OutputFormat.table:
        if not isinstance(data, dict):
            typer.echo("Table format requires an object result. Falling back to JSON.", err=True)
            output_json(data, pretty=True)
            return
        console = Console()
        for table in render_tables(data, table_title):
            console.print(table)


def output_error(
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    exit_code: int = 1,
) -> None:
    """Print an error as JSON to stderr and exit.

    Args:
        code: Error kind, e.g. ``REMOTE_ERROR`` or ``IO_ERROR``
        message: Human-readable message
        details: Optional extra fields such as the job id
        exit_code: Process exit code
    """
    error_data: dict[str, Any] = {
        "error": True,
        "code": code,
        "message": message,
    }
    if details:
        error_data["details"] = details

    print(json.dumps(error_data), file=sys.stderr)
    raise typer.Exit(exit_code)
