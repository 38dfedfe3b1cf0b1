"""
fmshell CLI - Rich Output Helpers

Utility functions for consistent command-line output using Rich. The shell
passes its own console so output can be captured; otherwise the module
consoles are used.

Functions:
    print_table   - Print a formatted table
    print_json    - Print formatted JSON
    print_error   - Print error message
    print_success - Print success message
    print_warning - Print warning message
    print_info    - Print info message
    print_tree    - Print a tree structure
    print_key_value - Print aligned key-value pairs
    format_size   - Human-readable byte count
"""

from __future__ import annotations

import json
from typing import Any, Optional

from rich.console import Console
from rich.json import JSON
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

# Create console instances
console = Console()
err_console = Console(stderr=True)


def print_table(
    title: Optional[str],
    columns: list[str],
    rows: list[list[str]],
    styles: Optional[list[str]] = None,
    show_header: bool = True,
    out: Optional[Console] = None,
) -> None:
    """
    Print a rich table.

    Args:
        title: Table title
        columns: Column headers
        rows: Table rows (list of lists)
        styles: Optional column styles
        show_header: Whether to show column headers
        out: Console to print to
    """
    table = Table(title=title, show_header=show_header)

    for i, col in enumerate(columns):
        style = styles[i] if styles and i < len(styles) else None
        table.add_column(col, style=style)

    for row in rows:
        # Ensure row has correct number of columns
        padded_row = [escape(str(cell)) for cell in row] + [""] * (len(columns) - len(row))
        table.add_row(*padded_row[:len(columns)])

    (out or console).print(table)


def print_json(
    data: dict | list,
    indent: int = 2,
    highlight: bool = True,
    out: Optional[Console] = None,
) -> None:
    """
    Print formatted JSON.

    Args:
        data: Data to print as JSON
        indent: Indentation level
        highlight: Whether to syntax highlight
        out: Console to print to
    """
    json_str = json.dumps(data, indent=indent, default=str)
    if highlight:
        (out or console).print(JSON(json_str))
    else:
        (out or console).print(json_str, markup=False, highlight=False)


def print_error(
    message: str,
    details: Optional[str] = None,
    out: Optional[Console] = None,
) -> None:
    """
    Print error message.

    Args:
        message: Error message
        details: Optional detailed error information
        out: Console to print to; defaults to stderr
    """
    target = out or err_console
    target.print(f"[bold red]Error:[/bold red] {escape(message)}")

    if details:
        target.print(f"[dim]{escape(details)}[/dim]")


def print_success(message: str, out: Optional[Console] = None) -> None:
    (out or console).print(f"[bold green]Success:[/bold green] {escape(message)}")


def print_warning(message: str, out: Optional[Console] = None) -> None:
    (out or console).print(f"[bold yellow]Warning:[/bold yellow] {escape(message)}")


def print_info(message: str, out: Optional[Console] = None) -> None:
    (out or console).print(f"[bold blue]Info:[/bold blue] {escape(message)}")


def print_tree(
    data: dict,
    title: str = "Tree",
    guide_style: str = "dim",
    out: Optional[Console] = None,
) -> None:
    """
    Print a tree structure.

    Dictionary values become branches; ``None`` values become leaves.

    Args:
        data: Nested dictionary to display as tree
        title: Root node title
        guide_style: Style for tree guide lines
        out: Console to print to
    """
    tree = Tree(f"[bold]{escape(title)}[/bold]", guide_style=guide_style)

    def add_nodes(parent_node: Tree, data_dict: dict) -> None:
        for key, value in data_dict.items():
            if isinstance(value, dict):
                child = parent_node.add(f"[cyan]{escape(str(key))}[/cyan]")
                add_nodes(child, value)
            elif value is None:
                parent_node.add(escape(str(key)))
            else:
                parent_node.add(f"{escape(str(key))} [dim]{escape(str(value))}[/dim]")

    add_nodes(tree, data)
    (out or console).print(tree)


def print_key_value(
    items: list[tuple[str, Any]],
    title: Optional[str] = None,
    key_style: str = "cyan",
    out: Optional[Console] = None,
) -> None:
    """
    Print key-value pairs in a formatted list.

    Args:
        items: List of (key, value) tuples
        title: Optional title
        key_style: Style for keys
        out: Console to print to
    """
    target = out or console
    if title:
        target.print(f"[bold]{escape(title)}[/bold]")

    max_key_len = max(len(str(k)) for k, _ in items) if items else 0

    for key, value in items:
        padded_key = str(key).ljust(max_key_len)
        target.print(f"  [{key_style}]{escape(padded_key)}[/{key_style}]: {escape(str(value))}")


def format_size(num_bytes: int) -> str:
    """Format a byte count with binary units, e.g. ``1.50 KB``."""
    units = ["B", "KB", "MB", "GB"]
    size = float(num_bytes)
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    return f"{size:.2f} {units[i]}"
