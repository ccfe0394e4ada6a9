"""Output formatting utilities for agent-friendly CLI output."""

from __future__ import annotations

import csv
import json
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table

from onedrive_api.models.items import DriveItem

console = Console(stderr=True)

ITEM_COLUMNS = ["name", "type", "size", "modified", "id"]


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


def human_size(size: int | None) -> str:
    """Format a byte count for people: ``1536`` -> ``1.5 KiB``."""
    if size is None:
        return ""
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if value < 1024 or unit == "TiB":
            return f"{size} B" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def item_row(item: DriveItem, human: bool = True) -> dict[str, Any]:
    """Flatten a drive item into one output row."""
    if item.is_deleted:
        kind = "deleted"
    elif item.is_folder:
        kind = "folder"
    else:
        kind = "file"
    return {
        "name": item.name or "",
        "type": kind,
        "size": human_size(item.size) if human else item.size,
        "modified": item.last_modified_date_time or "",
        "id": item.id,
    }


def print_items(
    items: list[DriveItem],
    fmt: OutputFormat = OutputFormat.TABLE,
    title: str | None = None,
) -> None:
    """Print drive items; sizes are humanized in table mode only."""
    if fmt == OutputFormat.JSON:
        print_json([i.model_dump(by_alias=True, exclude_none=True, mode="json") for i in items])
        return
    rows = [item_row(i, human=fmt == OutputFormat.TABLE) for i in items]
    print_output(rows, fmt, columns=ITEM_COLUMNS, title=title)


def print_output(
    data: list[dict[str, Any]] | dict[str, Any],
    fmt: OutputFormat = OutputFormat.TABLE,
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print data in the requested format.

    Args:
        data: The data to display (list of dicts or single dict).
        fmt: Output format (table, json, csv).
        columns: Which columns to show in table/csv mode. None = all.
        title: Optional title for table output.
    """
    if fmt == OutputFormat.JSON:
        print_json(data)
    elif fmt == OutputFormat.CSV:
        print_csv(data, columns)
    else:
        print_table(data, columns, title)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def print_table(
    data: list[dict[str, Any]] | dict[str, Any],
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print data as a Rich table on stderr."""
    if isinstance(data, dict):
        data = [data]

    if not data:
        console.print("[dim]No results.[/dim]")
        return

    if columns is None:
        columns = list(data[0].keys())

    table = Table(title=title, show_lines=False)
    for col in columns:
        table.add_column(col, overflow="fold", justify="right" if col == "size" else "left")

    for row in data:
        table.add_row(*[str(row.get(col, "")) for col in columns])

    console.print(table)


def print_csv(
    data: list[dict[str, Any]] | dict[str, Any],
    columns: list[str] | None = None,
) -> None:
    """Print data as CSV to stdout."""
    if isinstance(data, dict):
        data = [data]

    if not data:
        return

    if columns is None:
        columns = list(data[0].keys())

    writer = csv.DictWriter(sys.stdout, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in data:
        writer.writerow({k: row.get(k, "") for k in columns})
