"""Command line interface for egress-fw.

    egress-fw                  apply the firewall (same as `apply`)
    egress-fw apply [--dry-run]
    egress-fw verify           run the reachability probes only
    egress-fw config show|init
"""

import os
from pathlib import Path
from typing import Optional, Annotated

import typer
from rich.console import Console

from egress import __version__
from egress.core.context import ExecutionContext, create_context
from egress.core.output import console as app_console
from egress.core.config import DEFAULT_CONFIG_PATH, init_config
from egress.core.exceptions import EgressError, PrerequisiteError


app = typer.Typer(
    name="egress-fw",
    help="Default-deny outbound firewall with a fixed allowlist.",
    no_args_is_help=False,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)

config_app = typer.Typer(
    name="config",
    help="Inspect or create the optional config file.",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")


DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        help="Print iptables/ipset commands instead of running them. DNS and route lookups still run.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="-v lists every allowlist entry, -vv every command.",
    ),
]

QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet",
        "-q",
        help="Only print warnings and errors.",
        is_flag=True,
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option("--no-color", help="Plain output.", is_flag=True),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=f"Config file. Default: $EGRESS_FW_CONFIG or {DEFAULT_CONFIG_PATH}",
        dir_okay=False,
    ),
]


def version_callback(value: bool) -> None:
    if value:
        Console().print(f"egress-fw version {__version__}")
        raise typer.Exit()


def handle_error(error: EgressError) -> None:
    """Report a fatal error and exit with its code."""
    app_console.report(error)
    raise typer.Exit(error.exit_code)


def _check_root(ctx: ExecutionContext) -> None:
    """Exit early when a real run lacks root. Dry-run needs no privileges."""
    if ctx.dry_run or os.geteuid() == 0:
        return
    handle_error(PrerequisiteError(
        "This operation requires root privileges",
        hint="Run with: sudo egress-fw apply",
    ))


@app.callback(invoke_without_command=True)
def main(
    typer_ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Lock a container or dev host down to default-deny egress.

    Resets iptables, keeps DNS, SSH, loopback and the host /24 open,
    allows GitHub's published ranges, a fixed list of package registry
    domains and Google Cloud Storage ranges, then drops everything else.

    [bold]Examples:[/bold]
        sudo egress-fw
        sudo egress-fw apply -v
        egress-fw apply --dry-run
        sudo egress-fw verify
    """
    if typer_ctx.invoked_subcommand is None:
        apply()


@app.command("apply")
def apply(
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Replace all iptables rules with the egress allowlist and verify it.

    Exits non-zero at the first fatal problem, leaving the firewall as
    the last successful command left it.
    """
    from egress.commands.apply import run_apply

    ctx = create_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )
    _check_root(ctx)

    try:
        summary = run_apply(ctx, ctx.firewall_config)
    except EgressError as e:
        handle_error(e)
        return

    ctx.console.summary("Egress Firewall", {
        "GitHub ranges": summary.github_ranges,
        "Domain addresses": summary.domain_addresses,
        "Static ranges": summary.static_ranges,
        "Skipped domains": ", ".join(summary.skipped_domains) or "None",
        "Host network": summary.host_network,
        "Probe warnings": summary.probe_warnings,
    })


@app.command("verify")
def verify(
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Run the reachability probes against the rules currently loaded."""
    from egress.commands.apply import run_verify

    ctx = create_context(verbose=verbose, quiet=quiet, no_color=no_color, config=config)

    try:
        outcomes = run_verify(ctx, ctx.firewall_config)
    except EgressError as e:
        handle_error(e)
        return

    ctx.console.table(
        "Probes",
        ["URL", "Expected", "Result"],
        [
            [
                o.target.url,
                "reachable" if o.target.expect_reachable else "blocked",
                "[green]pass[/green]" if o.passed else "[yellow]warn[/yellow]",
            ]
            for o in outcomes
        ],
    )


@config_app.command("show")
def config_show(
    config: ConfigOption = None,
    no_color: NoColorOption = False,
) -> None:
    """Print the effective configuration (defaults merged with the file)."""
    ctx = create_context(no_color=no_color, config=config)

    try:
        app_config = ctx.config
    except EgressError as e:
        handle_error(e)
        return

    path = app_config.config_path
    ctx.console.print(f"[bold]Config file:[/bold] {path} ({'found' if path.exists() else 'not found, using defaults'})")
    ctx.console.yaml(app_config.config.to_yaml(), title="Effective configuration")
    ctx.console.summary("Environment", {
        "EGRESS_FW_CONFIG": app_config.env.config or "Not set",
        "EGRESS_FW_META_URL": app_config.env.meta_url or "Not set",
    })


@config_app.command("init")
def config_init(
    config: ConfigOption = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing file.", is_flag=True),
    ] = False,
) -> None:
    """Write the built-in defaults to a config file for editing."""
    path = config or DEFAULT_CONFIG_PATH

    try:
        init_config(path, force=force)
    except EgressError as e:
        handle_error(e)
    except OSError as e:
        app_console.error(f"Cannot write {path}: {e}")
        raise typer.Exit(2)

    app_console.success(f"Configuration written to {path}")


if __name__ == "__main__":
    app()
