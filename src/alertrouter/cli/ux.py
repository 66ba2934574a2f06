"""
Terminal output for alertrouter commands.

Messages are markup-escaped before printing: label values and regexes such
as ``instance=~"app-[0-9]+"`` would otherwise be read as rich style tags.
Color follows NO_COLOR / FORCE_COLOR; pipes and CI get plain text.
"""

from __future__ import annotations

import os
from typing import Iterable, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

# Nord palette
THEME = Theme(
    {
        "info": "#88C0D0",
        "success": "#A3BE8C",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "highlight": "#B48EAD",
        "muted": "#D8DEE9",
    }
)

console = Console(
    theme=THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def _say(style: str, symbol: str, message: str) -> None:
    console.print(f"[{style}]{symbol} {escape(message)}[/{style}]")


def success(message: str) -> None:
    _say("success", "✓", message)


def error(message: str) -> None:
    _say("error", "✗", message)


def warning(message: str) -> None:
    _say("warning", "⚠", message)


def info(message: str) -> None:
    _say("info", "ℹ", message)


def header(title: str) -> None:
    """Section rule above a command's output."""
    console.rule(f"[bold]{escape(title)}[/bold]", style="info")


def print_table(title: str, columns: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
    table = Table(title=title, title_style="highlight", header_style="bold")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(escape(str(cell)) for cell in row))
    console.print(table)
