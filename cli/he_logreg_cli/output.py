"""
Output formatting utilities for the he-logreg CLI.

Tables via rich, JSON for scripting, and a spinner for long-running
encrypted computations.
"""

import json
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional, Union

import numpy as np
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table


# Global console instances
console = Console()
error_console = Console(stderr=True)


class OutputFormatter:
    """Handles output formatting for CLI commands."""

    def __init__(self, format: str = "table", quiet: bool = False):
        """
        Initialize the output formatter.

        Args:
            format: Output format ('table' or 'json')
            quiet: Suppress non-essential output
        """
        self.format = format
        self.quiet = quiet

    def print_success(self, message: str) -> None:
        if self.quiet or self.format == "json":
            return
        console.print(f"[green]✓[/green] {message}")

    def print_info(self, message: str) -> None:
        if self.quiet or self.format == "json":
            return
        console.print(f"[blue]ℹ[/blue] {message}")

    def print_table(
        self,
        data: List[Dict[str, Any]],
        columns: Optional[List[Dict[str, str]]] = None,
        title: Optional[str] = None,
    ) -> None:
        """
        Print rows as a rich table (table format only).

        Args:
            data: List of dictionaries to display
            columns: Column definitions with 'key', 'header', and optional 'style'
            title: Optional table title
        """
        if self.format == "json":
            return
        if not data:
            console.print("[dim]No data to display[/dim]")
            return

        if columns is None:
            columns = [{"key": k, "header": k.replace("_", " ").title()} for k in data[0].keys()]

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for col in columns:
            table.add_column(col["header"], style=col.get("style", ""))
        for row in data:
            table.add_row(*[self._format_value(row.get(col["key"], "")) for col in columns])

        console.print(table)

    def print_dict(self, data: Dict[str, Any], title: Optional[str] = None) -> None:
        """Print a dictionary as a two-column table (table format only)."""
        if self.format == "json":
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in data.items():
            table.add_row(key.replace("_", " ").title(), self._format_value(value))

        console.print(table)

    def print_result(self, data: Dict[str, Any]) -> None:
        """Emit the machine-readable result (json format only)."""
        if self.format == "json":
            print(json.dumps(to_jsonable(data), indent=2))

    def _format_value(self, value: Any) -> str:
        if value is None:
            return "[dim]-[/dim]"
        elif isinstance(value, bool):
            return "[green]Yes[/green]" if value else "[red]No[/red]"
        elif isinstance(value, float):
            return f"{value:.6g}"
        elif isinstance(value, (list, dict, np.ndarray)):
            return json.dumps(to_jsonable(value))
        else:
            return str(value)


def to_jsonable(value: Any) -> Any:
    """Convert numpy values inside nested structures to plain Python."""
    if isinstance(value, np.ndarray):
        return [float(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


@contextmanager
def progress_spinner(message: str, enabled: bool = True) -> Generator[Optional[Progress], None, None]:
    """
    Context manager for a simple spinner progress indicator.

    Args:
        message: Message to display while spinning
        enabled: Show nothing when False (quiet or json output)
    """
    if not enabled:
        yield None
        return
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        transient=True,
        console=error_console,
    ) as progress:
        progress.add_task(description=message, total=None)
        yield progress


def print_error(message: str, details: Optional[str] = None) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗ Error:[/red] {message}")
    if details:
        error_console.print(f"  [dim]{details}[/dim]")


def print_warning(message: str) -> None:
    error_console.print(f"[yellow]⚠[/yellow] {message}")


def format_duration(seconds: Union[int, float]) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    else:
        return f"{seconds / 3600:.1f}h"
