"""
Rich Output Utilities
=====================

Terminal output for Humsana using the Rich library.

Everything is rendered to stderr: when Humsana runs as a stdio MCP server,
stdout carries the protocol stream and must stay clean.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme


# =============================================================================
# Color Scheme & Theme
# =============================================================================

@dataclass(frozen=True)
class HumsanaColors:
    """Humsana color palette using hex for truecolor terminal support."""
    ink: str = "#E6E6E6"       # primary text
    dim: str = "#9AA4B2"       # muted text
    calm: str = "#22D3EE"      # relaxed / info
    steel: str = "#94A3B8"     # keys, secondary accent
    ok: str = "#22C55E"        # allowed
    warn: str = "#FBBF24"      # caution
    err: str = "#EF4444"       # blocked


def humsana_theme(colors: HumsanaColors = HumsanaColors()) -> Theme:
    """Rich Theme with semantic style names, e.g. console.print("...", style="hs.ok")."""
    return Theme(
        {
            "hs.banner": f"bold {colors.calm}",
            "hs.border": f"{colors.calm}",
            "hs.muted": f"{colors.dim}",
            "hs.text": f"{colors.ink}",

            "hs.ok": f"bold {colors.ok}",
            "hs.warn": f"bold {colors.warn}",
            "hs.err": f"bold {colors.err}",
            "hs.info": f"{colors.calm}",

            "hs.key": f"{colors.steel}",
            "hs.value": f"{colors.ink}",
            "hs.path": f"{colors.calm}",
            "hs.timestamp": f"{colors.dim}",

            "hs.table.header": f"bold {colors.calm}",
        }
    )


# =============================================================================
# Unicode / ASCII Fallbacks
# =============================================================================

def _can_use_unicode() -> bool:
    """Check if stderr can handle the Unicode icons we use."""
    if os.name != "nt":
        return True
    try:
        encoding = sys.stderr.encoding or "utf-8"
        "✓✗ℹ".encode(encoding)
        return True
    except (UnicodeEncodeError, LookupError, AttributeError):
        return False


_UNICODE_ICONS = {
    "check": "✓",
    "cross": "✗",
    "warning": "⚠️",
    "info": "ℹ",
}

_ASCII_ICONS = {
    "check": "[OK]",
    "cross": "[X]",
    "warning": "[!]",
    "info": "[i]",
}

_ICONS = _UNICODE_ICONS if _can_use_unicode() else _ASCII_ICONS


def icon(name: str) -> str:
    """Get an icon by name, using ASCII fallback if needed."""
    return _ICONS.get(name, "")


# =============================================================================
# Global Console Instance
# =============================================================================

console = Console(
    theme=humsana_theme(),
    stderr=True,
    emoji=_ICONS is _UNICODE_ICONS,
)


# =============================================================================
# Basic Message Functions
# =============================================================================

def print_success(message: str) -> None:
    """Print a success message with checkmark."""
    console.print(f"[hs.ok]{escape(icon('check'))} {escape(message)}[/]")


def print_error(message: str) -> None:
    """Print an error message with X."""
    console.print(f"[hs.err]{escape(icon('cross'))} {escape(message)}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[hs.warn]{escape(icon('warning'))} {escape(message)}[/]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[hs.info]{escape(icon('info'))} {escape(message)}[/]")


def print_muted(message: str) -> None:
    """Print muted/secondary text."""
    console.print(f"[hs.muted]{escape(message)}[/]")


# =============================================================================
# Structured Data
# =============================================================================

def print_key_value_table(
    data: Dict[str, Any],
    *,
    title: Optional[str] = None,
    border_style: str = "hs.border",
) -> None:
    """Print multiple key-value pairs in a clean table format."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="hs.key")
    table.add_column("Value", style="hs.value")

    for key, value in data.items():
        table.add_row(key, str(value))

    if title:
        console.print(Panel(table, title=f"[bold]{title}[/]", border_style=border_style))
    else:
        console.print(table)


def create_table(
    *,
    title: Optional[str] = None,
    columns: Optional[List[str]] = None,
    border_style: str = "hs.border",
    header_style: str = "hs.table.header",
) -> Table:
    """Create a styled Rich Table with the Humsana theme."""
    table = Table(
        title=title,
        show_header=True,
        header_style=header_style,
        border_style=border_style,
    )

    if columns:
        for col in columns:
            table.add_column(col)

    return table


def print_panel(
    content: Union[str, Text],
    *,
    title: Optional[str] = None,
    border_style: str = "hs.border",
) -> None:
    """Print content in a styled panel."""
    console.print(Panel(
        content,
        title=f"[bold]{title}[/]" if title else None,
        border_style=border_style,
        padding=(1, 2),
    ))


# =============================================================================
# Logging Integration
# =============================================================================

def setup_rich_logging(level: int = logging.INFO) -> None:
    """
    Route Python logging through Rich on stderr.

    Usage:
        setup_rich_logging()
        logging.getLogger(__name__).info("Interlock ready")
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(
            console=console,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )],
    )
