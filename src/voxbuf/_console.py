"""Rich consoles and logging setup shared by the voxbuf CLI."""

from __future__ import annotations

import logging
import sys

from rich.console import Console

# Tables use box drawing characters; keep them printable on Windows consoles.
try:
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")
except (AttributeError, OSError):
    pass

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def print_error(message: str) -> None:
    err_console.print(f"[red]Error: {message}[/red]")
