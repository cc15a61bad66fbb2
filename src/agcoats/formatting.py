# Module: src/agcoats/formatting.py
# Description: Rendering of API results as JSON, rich tables and detail views.

import json
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .models import Column, SECRET_CONFIG_KEYS

MAX_COLUMN_WIDTH = 40
MISSING = "N/A"

console = Console()
err_console = Console(stderr=True)


def print_json(data: Any) -> None:
    """Writes the value verbatim as pretty-printed JSON."""
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {escape(message)}")


def print_error(message: str) -> None:
    err_console.print(f"[bold red]✗[/bold red] {escape(message)}")


def print_heading(title: str) -> None:
    console.print(f"\n[bold cyan]{escape(title)}[/bold cyan]\n")


@contextmanager
def spinner(message: str) -> Iterator[None]:
    """Shows a status spinner on stderr while the block runs (interactive terminals only)."""
    if not err_console.is_terminal:
        yield
        return
    with err_console.status(message):
        yield


def format_date(value: Any) -> str:
    """
    Renders an ISO-8601 timestamp (or epoch seconds) in the locale's date/time
    format. Timestamps carrying an offset are shown in local time.
    """
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            parsed = datetime.fromtimestamp(value)
        else:
            text = str(value).strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
    except (ValueError, OverflowError, OSError):
        return str(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()  # local time
    return parsed.strftime("%c")


def format_value(value: Any, is_date: bool = False) -> str:
    if value is None or value == "":
        return MISSING
    if is_date:
        return format_date(value)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def truncate(text: str, width: int = MAX_COLUMN_WIDTH) -> str:
    return text if len(text) <= width else text[:width]


def _field(item: Any, column: Column) -> str:
    if not isinstance(item, Mapping):
        return MISSING
    return format_value(item.get(column.key), column.is_date)


def build_table(items: Sequence[Any], columns: Sequence[Column], title: Optional[str] = None) -> Table:
    """
    Builds a rich table for a collection of entities.

    Each column is as wide as its longest label or value, capped at
    MAX_COLUMN_WIDTH; longer values are cut, never wrapped.
    """
    rows: List[List[str]] = [[truncate(_field(item, col)) for col in columns] for item in items]

    table = Table(title=title, show_header=True, header_style="bold magenta")
    for index, column in enumerate(columns):
        width = min(max([len(column.label)] + [len(row[index]) for row in rows]), MAX_COLUMN_WIDTH)
        table.add_column(
            column.label,
            width=width,
            min_width=width,
            no_wrap=True,
            overflow="crop",
        )
    for row in rows:
        table.add_row(*[Text(cell) for cell in row])
    return table


def table_width(table: Table) -> int:
    """Full rendered width of a table whose columns all have a fixed width."""
    left, right = table.padding[3], table.padding[1]
    cells = sum((col.width or 0) + left + right for col in table.columns)
    borders = len(table.columns) + 1 if table.box else 0
    return cells + borders


def print_table(table: Table) -> None:
    """
    Prints a fixed-width table without letting rich shrink it to the terminal.

    Wider tables run past the right edge instead of losing columns.
    """
    width = table_width(table)
    if width <= console.width:
        console.print(table)
        return
    Console(width=width).print(table)


def render_list(items: Sequence[Any], columns: Sequence[Column], noun: str, title: Optional[str] = None) -> None:
    if not items:
        console.print(f"[yellow]No {noun} found.[/yellow]")
        return
    print_table(build_table(items, columns, title=title))


def render_detail(item: Any, columns: Iterable[Column], title: Optional[str] = None) -> None:
    """Prints the fixed list of labeled fields, N/A for anything missing."""
    if title:
        print_heading(title)
    for column in columns:
        value = _field(item, column)
        console.print(f"  [bold]{escape(column.label)}:[/bold] {escape(value)}")


def render_payload(data: Any, title: str) -> None:
    """Heading followed by the pretty-printed payload (services API results)."""
    print_heading(title)
    if isinstance(data, str):
        typer.echo(data)
    else:
        print_json(data)


def render_brands(data: Any) -> None:
    print_heading("Brands:")
    if not isinstance(data, list):
        print_json(data)
        return
    if not data:
        console.print("[yellow]No brands found.[/yellow]")
        return
    for brand in data:
        if isinstance(brand, Mapping):
            name = brand.get("Name") or brand.get("name") or json.dumps(brand, ensure_ascii=False)
        else:
            name = brand
        console.print(f"  [yellow]{escape(str(name))}[/yellow]")


def mask_secret(value: Any) -> str:
    text = str(value)
    if len(text) <= 8:
        return "****"
    return f"{text[:4]}…{text[-4:]}"


def render_config(config: Mapping[str, Any]) -> None:
    """Key/value table of the configuration with secrets masked."""
    table = Table(title="Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Key", no_wrap=True)
    table.add_column("Value", overflow="fold")
    for key in sorted(config):
        value = config[key]
        if value in (None, ""):
            shown = MISSING
        elif key in SECRET_CONFIG_KEYS:
            shown = mask_secret(value)
        else:
            shown = format_value(value)
        table.add_row(escape(key), escape(shown))
    console.print(table)
