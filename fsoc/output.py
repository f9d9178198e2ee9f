"""Output formatting for fsoc commands.

Handlers pick up the ``-o/--output`` format and ``--fields`` projection from
the execution context and hand their data to one of the helpers below.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import click
import yaml

from .utils import project_fields

OUTPUT_FORMATS = ["auto", "table", "detail", "json", "yaml"]


def _dump(data: Any, output_format: str) -> None:
    if output_format == "json":
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip("\n"))


def output_detail(
    item: Dict[str, Any],
    output_format: str = "auto",
    fields: Optional[str] = None,
) -> None:
    """Print a single object as key/value lines, JSON or YAML."""
    output_format = output_format.lower()
    if fields:
        item = project_fields(item, fields)

    if output_format in ("json", "yaml"):
        _dump(item, output_format)
        return

    width = max((len(str(key)) for key in item), default=0)
    for key, value in item.items():
        click.echo(f"{str(key) + ':':<{width + 1}} {'' if value is None else value}")


def output_formatted_list(
    items: List[Dict[str, Any]],
    output_format: str,
    headers: List[str],
    column_widths: List[int],
    row_formatter_func: Callable[[Dict[str, Any]], List[str]],
    empty_message: str = "No items found.",
    total_label: str = "item(s)",
    fields: Optional[str] = None,
) -> None:
    """Print a list as a box-drawn table, per-item detail, JSON or YAML.

    Args:
        items: List of items to output
        output_format: One of OUTPUT_FORMATS; 'auto' renders a table
        headers: List of header names for table output
        column_widths: List of column widths for table formatting
        row_formatter_func: Function that converts item to list of column values
        empty_message: Message to display when no items are found
        total_label: Label for total count (e.g., "profile(s)")
        fields: Comma-separated keys to keep in json/yaml/detail output
    """
    output_format = output_format.lower()

    if output_format in ("json", "yaml"):
        data = [project_fields(item, fields) for item in items] if fields else items
        _dump(data, output_format)
        return

    if not items:
        click.echo(empty_message)
        return

    if output_format == "detail":
        for index, item in enumerate(items):
            if index:
                click.echo("")
            output_detail(item, "detail", fields)
        return

    if len(headers) != len(column_widths):
        raise ValueError("Headers and column_widths must have the same length")

    _draw_table_border(column_widths, "top")
    _draw_table_header(headers, column_widths)
    _draw_table_border(column_widths, "middle")
    _draw_table_rows(items, row_formatter_func, column_widths)
    _draw_table_border(column_widths, "bottom")

    click.echo(f"\nTotal: {len(items)} {total_label}")


def _draw_table_border(column_widths: List[int], border_type: str) -> None:
    """Draw table borders with appropriate characters."""
    if border_type == "top":
        left, junction, right = "┌", "┬", "┐"
    elif border_type == "middle":
        left, junction, right = "├", "┼", "┤"
    elif border_type == "bottom":
        left, junction, right = "└", "┴", "┘"
    else:
        raise ValueError("Invalid border_type")

    click.echo(left + junction.join("─" * (w + 2) for w in column_widths) + right)


def _draw_table_header(headers: List[str], column_widths: List[int]) -> None:
    header_parts = ["│"]
    for header, width in zip(headers, column_widths):
        header_parts.append(f" {header:<{width}} │")
    click.echo("".join(header_parts))


def _draw_table_rows(
    items: List[Dict[str, Any]],
    row_formatter_func: Callable[[Dict[str, Any]], List[str]],
    column_widths: List[int],
) -> None:
    for item in items:
        row_data = row_formatter_func(item)
        if len(row_data) != len(column_widths):
            raise ValueError("Row data must match column count")

        row_parts = ["│"]
        for value, width in zip(row_data, column_widths):
            str_value = str(value or "")[:width]
            row_parts.append(f" {str_value:<{width}} │")
        click.echo("".join(row_parts))
