from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from promo_storage.orchestrator import IngestionReport


def print_reports(reports: List[IngestionReport], console: Optional[Console] = None) -> None:
    """
    Render ingestion reports as a rich table, one row per file.
    """
    console = console or Console()

    if not reports:
        console.print("[yellow]No files ingested.[/yellow]")
        return

    table = Table(title="Ingestion Results", box=box.ROUNDED)

    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("State", justify="center")
    table.add_column("Lines", justify="right", style="magenta")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Applied", justify="right", style="bold green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Error", style="red")

    for report in reports:
        state_style = "green" if report.succeeded else "bold red"
        table.add_row(
            report.path,
            f"[{state_style}]{report.state.value}[/{state_style}]",
            f"{report.lines_read:,}",
            f"{report.decode_faults:,}",
            f"{report.applied:,}",
            f"{report.failed:,}",
            f"{report.duration_seconds:.2f}",
            report.error or "",
        )

    console.print(table)


def print_promotion(rendered: Dict[str, Any], console: Optional[Console] = None) -> None:
    """Render one looked-up promotion as a two-column table."""
    console = console or Console()
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in rendered.items():
        table.add_row(key, str(value))
    console.print(table)
