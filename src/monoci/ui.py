"""Console output and logging setup."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console()


def configure_logging(verbose: int = 0, quiet: int = 0) -> None:
    """Route stdlib logging through rich."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def heading(message: str) -> None:
    console.print(message, style="bold", markup=False, highlight=False)


def item(message: str) -> None:
    console.print(f"  {message}", markup=False, highlight=False)


def step(directory: str, task: str) -> None:
    """Progress line printed before each subprocess."""
    console.print()
    console.print(f"{directory}: {task} ...", style="bold cyan", markup=False, highlight=False)


def failure(directory: str, task: str) -> None:
    console.print(f"{directory}: {task} failed", style="yellow", markup=False, highlight=False)
