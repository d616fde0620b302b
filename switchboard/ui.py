"""Terminal output: shared rich console, palette, and render helpers."""

import json
import logging
import warnings
from dataclasses import dataclass

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .errors import SchemaTranslationWarning


@dataclass(frozen=True)
class ColorPalette:
    """Core UI color palette."""

    accent: str = "#00d4e5"
    secondary: str = "#b44dff"
    text_bright: str = "#e8e8f0"
    text: str = "#b8b8cc"
    text_dim: str = "#4a4a60"
    text_muted: str = "#363648"
    success: str = "#34d399"
    warning: str = "#e5c747"
    error: str = "#e55a6e"
    tool: str = "#e5c747"


PALETTE = ColorPalette()

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route library logging and schema warnings through rich."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    logging.captureWarnings(True)
    warnings.simplefilter("always", SchemaTranslationWarning)


def render_header(title: str, subtitle: str = "") -> None:
    """Render a header panel."""
    header_text = Text(title, style=f"bold {PALETTE.accent}")
    if subtitle:
        header_text.append(f"\n{subtitle}", style=f"dim {PALETTE.text_bright}")
    console.print(Panel(header_text, border_style=PALETTE.secondary, padding=(1, 2), expand=False))


def render_info(text: str) -> None:
    console.print(text, style=f"dim {PALETTE.accent}")


def render_success(text: str) -> None:
    console.print(text, style=PALETTE.success)


def render_warning(text: str) -> None:
    console.print(text, style=PALETTE.warning)


def render_error(text: str) -> None:
    """Render an error message."""
    err = Text()
    err.append("err ", style=f"bold {PALETTE.error}")
    err.append("| ", style=f"dim {PALETTE.text_muted}")
    err.append(text, style=PALETTE.error)
    console.print(err)


def render_response(text: str) -> None:
    """Render the model's answer."""
    line = Text()
    line.append("gem ", style=f"bold {PALETTE.secondary}")
    line.append("| ", style=f"dim {PALETTE.text_muted}")
    line.append(text, style=PALETTE.text_bright)
    console.print(line)


def render_tool_calls(tool_log: list[dict]) -> None:
    """Show which tools ran during a turn and whether they failed."""
    for entry in tool_log:
        output = entry.get("output") or {}
        failed = bool(output.get("isError") or output.get("error"))
        line = Text()
        line.append("fn  ", style=f"bold {PALETTE.tool}")
        line.append("| ", style=f"dim {PALETTE.text_muted}")
        line.append(entry.get("tool", ""), style=PALETTE.tool)
        line.append(f" {json.dumps(entry.get('input') or {})}", style=f"dim {PALETTE.text}")
        line.append(" failed" if failed else " ok", style=PALETTE.error if failed else PALETTE.success)
        console.print(line)


def render_servers_table(servers: list) -> None:
    """Render configured servers, marking the default."""
    table = Table(show_header=True, header_style=f"bold {PALETTE.accent}", box=None)
    table.add_column("name")
    table.add_column("url")
    table.add_column("")
    for server in servers:
        marker = Text("default", style=PALETTE.success) if server.is_default else Text("")
        table.add_row(Text(server.name, style=PALETTE.secondary), server.url, marker)
    console.print(table)
