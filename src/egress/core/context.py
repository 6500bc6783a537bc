"""Per-invocation state shared by the CLI, executor and services."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from egress.core.config import AppConfig, FirewallConfig
from egress.core.output import Console, console, Verbosity


@dataclass
class ExecutionContext:
    """Flags for one run of egress-fw.

    Creating a context configures its console, so output settings take
    effect before the first stage prints anything. Configuration is read
    on first access; a bad config file therefore fails inside the
    command's error handling rather than at startup.

    Attributes:
        dry_run: Print mutating commands instead of running them
        verbosity: Output level (see Verbosity)
        no_color: Plain console output
        config_path: Config file override (None = env or default)
    """

    dry_run: bool = False
    verbosity: int = Verbosity.NORMAL
    no_color: bool = False
    config_path: Optional[Path] = None

    _config: Optional[AppConfig] = field(default=None, repr=False)
    _console: Console = field(default_factory=lambda: console, repr=False)

    def __post_init__(self) -> None:
        self._console.configure(
            verbosity=self.verbosity,
            dry_run=self.dry_run,
            no_color=self.no_color,
        )

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = AppConfig(config_path=self.config_path)
        return self._config

    @property
    def firewall_config(self) -> FirewallConfig:
        """The effective firewall policy."""
        return self.config.config

    @property
    def console(self) -> Console:
        return self._console

    @property
    def is_verbose(self) -> bool:
        return self.verbosity >= Verbosity.VERBOSE


def create_context(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    config: Optional[Path] = None,
) -> ExecutionContext:
    """Build a context from CLI flags. --quiet wins over -v."""
    if quiet:
        verbosity = Verbosity.QUIET
    else:
        verbosity = min(Verbosity.NORMAL + verbose, Verbosity.DEBUG)

    return ExecutionContext(
        dry_run=dry_run,
        verbosity=verbosity,
        no_color=no_color,
        config_path=config,
    )
