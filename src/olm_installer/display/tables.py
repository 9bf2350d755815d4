"""Table rendering utilities for the OLM installer."""

from io import StringIO
from typing import Any

from rich.console import Console
from rich.table import Table


def create_status_table(resources: list[dict[str, Any]]) -> Table:
    """Create a table for OLM resource status.

    Args:
        resources: List of resource dicts with name, namespace, kind, status keys

    Returns:
        Rich Table with one row per resource
    """
    table = Table(box=None, pad_edge=False, show_edge=False)

    table.add_column("NAME", no_wrap=True)
    table.add_column("NAMESPACE", no_wrap=True)
    table.add_column("KIND", no_wrap=True)
    table.add_column("STATUS")

    for resource in resources:
        table.add_row(
            resource.get("name", "unknown"),
            resource.get("namespace") or "",
            resource.get("kind", "unknown"),
            resource.get("status", "unknown"),
        )

    return table


def render_table(table: Table, width: int = 200) -> str:
    """Render a table to plain text.

    Args:
        table: Table to render
        width: Maximum line width

    Returns:
        Table text without styling or trailing whitespace
    """
    buffer = StringIO()
    console = Console(file=buffer, width=width, color_system=None, highlight=False)
    console.print(table)
    return "\n".join(line.rstrip() for line in buffer.getvalue().splitlines()).strip("\n")
