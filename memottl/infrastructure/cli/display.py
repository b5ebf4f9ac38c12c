import logging
from typing import Any, Dict, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from memottl.core.services.benchmark_service import BenchmarkResult

logger = logging.getLogger(__name__)


class ConsoleDisplay:
    """Console output for the memottl CLI using the rich library."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    @console.setter
    def console(self, console: Console) -> None:
        self._console = console

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        logger.debug(f"Display error: {error_message}")
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_benchmark(self, result: BenchmarkResult) -> None:
        """Renders plain vs memoized timings as a table.

        Args:
            result: The finished benchmark run.
        """
        table = Table(
            title=f"{result.iterations} calls, {result.delay_seconds * 1000:.0f} ms per computation",
            box=ROUNDED,
        )
        table.add_column("Variant", style="bold")
        table.add_column("Computations", justify="right")
        table.add_column("Total (ms)", justify="right")

        table.add_row("plain", str(result.plain_computations), f"{result.plain_seconds * 1000:.2f}")
        table.add_row("memoized", str(result.memoized_computations), f"{result.memoized_seconds * 1000:.2f}")
        self.console.print(table)

        saved_ms = result.saved_seconds * 1000
        style = "bold green" if saved_ms >= 0 else "bold yellow"
        self.console.print(Text(f"Saved time: {saved_ms:.2f} ms", style=style))

    def display_settings(self, settings: Dict[str, Any]) -> None:
        table = Table(title="Effective memoization defaults", box=SIMPLE)
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for key, value in settings.items():
            table.add_row(key, str(value))
        self.console.print(table)
