"""Subprocess execution with dry-run support.

Every external tool (iptables, ipset, dig, ip, curl) is run through
CommandExecutor so dry-run and debug logging behave the same for all
of them.
"""

import shlex
import subprocess
from dataclasses import dataclass
from typing import Optional

from egress.core.context import ExecutionContext
from egress.core.exceptions import ExecutionError


@dataclass
class CommandResult:
    command: list[str]
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.return_code == 0


class CommandExecutor:
    """Runs commands once each, in call order, without retry.

    In dry-run mode only commands marked read_only execute; the rest are
    printed and reported as successful with empty output. Lookups are
    read-only, so a dry run still shows the allowlist a real run would
    build.
    """

    def __init__(self, ctx: ExecutionContext) -> None:
        self.ctx = ctx

    def run(
        self,
        command: list[str],
        *,
        check: bool = True,
        read_only: bool = False,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        """Run a command.

        Args:
            command: argv list; never passed through a shell
            check: Raise on non-zero exit
            read_only: Safe to run in dry-run mode
            timeout: Seconds before the command is killed

        Raises:
            ExecutionError: On timeout, missing binary, or non-zero exit
                when check is set
        """
        display = shlex.join(command)
        self.ctx.console.debug(f"Running: {display}")

        if self.ctx.dry_run and not read_only:
            self.ctx.console.dry_run_msg(f"Run: {display}")
            return CommandResult(command=command, return_code=0, stdout="", stderr="")

        try:
            proc = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise ExecutionError(
                f"Command timed out after {timeout}s: {display}",
                command=display,
            )
        except FileNotFoundError:
            raise ExecutionError(
                f"Command not found: {command[0]}",
                command=display,
                hint=f"Install {command[0]} and retry",
            )

        result = CommandResult(
            command=command,
            return_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )

        if check and not result.success:
            raise ExecutionError(
                f"Command failed: {display}",
                command=display,
                return_code=result.return_code,
                stderr=result.stderr or None,
            )

        return result
