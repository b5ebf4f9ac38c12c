"""Main entry point for the memottl command line.

Sets up the Typer CLI application, wires the display and services, and
exposes a benchmark of plain vs memoized calls plus a view of the
effective configuration.
"""

import logging
from typing import Annotated, Optional

import typer

from memottl.core.services.benchmark_service import (
    DEFAULT_DELAY_SECONDS, DEFAULT_ITERATIONS, BenchmarkService,
)
from memottl.domain.errors import MemoTTLError
from memottl.infrastructure.cli.display import ConsoleDisplay
from memottl.infrastructure.config.settings import (
    get_config, get_default_max_size, get_default_ttl, get_log_level, load_configuration,
)
from memottl.infrastructure.monitoring.logger_setup import setup_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="memottl",
    help="memottl: method memoization with TTL and LRU eviction.",
    add_completion=False,
)


def create_display() -> ConsoleDisplay:
    return ConsoleDisplay()


@app.callback()
def main_callback(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Logging level (DEBUG, INFO, WARNING...). Uses config if not set.")
    ] = None,
):
    """Configure logging before any command runs."""
    load_configuration()
    setup_logging(
        log_level=log_level or get_log_level(),
        log_file=get_config("logging.file"),
    )


@app.command()
def benchmark(
    iterations: Annotated[int, typer.Option("--iterations", "-n", min=1, help="Calls per variant.")] = DEFAULT_ITERATIONS,
    delay: Annotated[float, typer.Option("--delay", "-d", min=0.0, help="Seconds each computation takes.")] = DEFAULT_DELAY_SECONDS,
    ttl: Annotated[Optional[float], typer.Option(help="TTL in seconds for memoized results.")] = None,
    max_size: Annotated[Optional[int], typer.Option("--max-size", help="Cache capacity.")] = None,
):
    """Compare repeated plain calls with memoized calls of a slow operation."""
    display = create_display()
    try:
        result = BenchmarkService().run(
            iterations=iterations,
            delay_seconds=delay,
            ttl=get_default_ttl() if ttl is None else ttl,
            max_size=get_default_max_size() if max_size is None else max_size,
        )
    except (MemoTTLError, ValueError) as e:
        logger.error(f"Benchmark failed: {e}")
        display.display_error(f"Benchmark failed: {e}")
        raise typer.Exit(code=1)
    display.display_benchmark(result)


@app.command(name="config")
def config_command():
    """Show the effective memoization defaults."""
    display = create_display()
    display.display_settings({
        "default ttl (s)": get_default_ttl(),
        "default max size": get_default_max_size(),
        "log level": get_log_level(),
    })


def cli_entry_point():
    """Function called by the console script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
