"""Console output for firewall runs, built on Rich.

Progress lines go to stdout and are filtered by verbosity. Problems go
to stderr with a fixed prefix so they survive --quiet and can be
grepped from container logs:

    [WARNING] Failed to resolve foo.invalid, skipping...
    [ERROR] Failed to fetch GitHub IP ranges
"""

from enum import IntEnum
from typing import Any, Iterable

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from egress.core.exceptions import EgressError


class Verbosity(IntEnum):
    """Output verbosity levels."""
    QUIET = 0    # Warnings and errors
    NORMAL = 1   # Stage progress
    VERBOSE = 2  # Every allowlist entry
    DEBUG = 3    # Every command run


WARNING_PREFIX = "[yellow][WARNING][/yellow]"
ERROR_PREFIX = "[red][ERROR][/red]"


class Console:
    """Verbosity-aware wrapper around a stdout and a stderr Rich console."""

    def __init__(self) -> None:
        self._out = RichConsole(highlight=False, soft_wrap=True)
        self._err = RichConsole(stderr=True, highlight=False, soft_wrap=True)
        self.verbosity = Verbosity.NORMAL
        self.dry_run = False

    def configure(
        self,
        verbosity: int = Verbosity.NORMAL,
        dry_run: bool = False,
        no_color: bool = False,
    ) -> None:
        """Apply CLI flags. Out-of-range verbosity is clamped."""
        self.verbosity = Verbosity(max(Verbosity.QUIET, min(verbosity, Verbosity.DEBUG)))
        self.dry_run = dry_run
        if no_color:
            self._out = RichConsole(highlight=False, soft_wrap=True, no_color=True)
            self._err = RichConsole(stderr=True, highlight=False, soft_wrap=True, no_color=True)

    def _emit(self, level: Verbosity, message: Any) -> None:
        if self.verbosity >= level:
            self._out.print(message)

    # Progress (stdout)
    def step(self, message: str) -> None:
        """Announce a pipeline stage."""
        self._emit(Verbosity.NORMAL, f"[blue]->[/blue] {escape(message)}")

    def info(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, f"[green][INFO][/green] {escape(message)}")

    def success(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, f"[green][OK][/green] {escape(message)}")

    def verbose(self, message: str) -> None:
        self._emit(Verbosity.VERBOSE, f"[dim]{escape(message)}[/dim]")

    def debug(self, message: str) -> None:
        self._emit(Verbosity.DEBUG, f"[cyan][DEBUG][/cyan] {escape(message)}")

    def dry_run_msg(self, message: str) -> None:
        """Show a skipped mutation. Silent outside dry-run."""
        if self.dry_run:
            self._out.print(f"[blue][DRY-RUN][/blue] Would: {escape(message)}")

    # Problems (stderr, never filtered)
    def warn(self, message: str) -> None:
        self._err.print(f"{WARNING_PREFIX} {escape(message)}")

    def error(self, message: str) -> None:
        self._err.print(f"{ERROR_PREFIX} {escape(message)}")

    def hint(self, message: str) -> None:
        self._err.print(f"[cyan]Hint:[/cyan] {escape(message)}")

    def report(self, error: EgressError) -> None:
        """Print a fatal error with its details and hint."""
        self.error(error.message)
        for detail in error.details:
            self._err.print(f"  [dim]{escape(detail)}[/dim]")
        if error.hint:
            self.hint(error.hint)

    # Structured output
    def print(self, message: Any = "", **kwargs: Any) -> None:
        """Print unconditionally."""
        self._out.print(message, **kwargs)

    def rule(self, title: str = "") -> None:
        if self.verbosity >= Verbosity.NORMAL:
            self._out.rule(title)

    def table(self, title: str, columns: list[str], rows: Iterable[list[str]]) -> None:
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self._emit(Verbosity.NORMAL, table)

    def yaml(self, text: str, title: str) -> None:
        self._out.print(Panel(
            Syntax(text, "yaml", theme="monokai", line_numbers=False),
            title=title,
            border_style="cyan",
        ))

    def summary(self, title: str, items: dict[str, Any]) -> None:
        """Print a key/value panel. Suppressed by --quiet."""
        lines = [f"[bold]{key}:[/bold] {escape(str(value))}" for key, value in items.items()]
        self._emit(Verbosity.NORMAL, Panel("\n".join(lines), title=title, border_style="blue"))


# Shared by the CLI, the services and the preflight checks
console = Console()
