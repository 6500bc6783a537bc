"""IP set management for the destination allowlist.

The allowlist is a single hash:net set. It is destroyed and recreated on
every run; entries are only ever added.
"""

from egress.core.context import ExecutionContext
from egress.core.executor import CommandExecutor, CommandResult
from egress.core.exceptions import FirewallError


SET_TYPE = "hash:net"


class IpsetService:
    """Create, populate and destroy a named IP set."""

    def __init__(self, ctx: ExecutionContext, executor: CommandExecutor) -> None:
        self.ctx = ctx
        self.executor = executor

    def destroy(self, name: str) -> None:
        """Destroy the set if it exists.

        A missing set is not an error.
        """
        result = self.executor.run(["ipset", "destroy", name], check=False)
        if not result.success:
            self.ctx.console.debug(f"ipset {name} not destroyed: {result.stderr.strip()}")

    def create(self, name: str, set_type: str = SET_TYPE) -> None:
        """Create an empty set."""
        self.ctx.console.step(f"Creating ipset {name} ({set_type})")
        self._run_ipset(["create", name, set_type])

    def add(self, name: str, entry: str) -> None:
        """Add an address or CIDR to the set.

        Exact addresses are stored as /32. Re-adding an entry already
        covered is a no-op.
        """
        self._run_ipset(["add", name, entry, "-exist"])

    def _run_ipset(self, args: list[str]) -> CommandResult:
        cmd = ["ipset"] + args
        result = self.executor.run(cmd, check=False)

        if not result.success:
            raise FirewallError(
                f"ipset command failed: {' '.join(cmd)}",
                details=[result.stderr.strip()] if result.stderr.strip() else None,
            )

        return result
