"""Post-configuration reachability probes.

Each probe is a single curl request bounded by a connect timeout. A probe
passes when reachability matches what the policy should allow.
"""

from dataclasses import dataclass

from egress.core.config import ProbeTarget
from egress.core.context import ExecutionContext
from egress.core.executor import CommandExecutor
from egress.core.exceptions import VerificationError


DEFAULT_CONNECT_TIMEOUT = 5


@dataclass
class ProbeOutcome:
    """Result of one probe."""
    target: ProbeTarget
    reachable: bool

    @property
    def passed(self) -> bool:
        """Check if reachability matched the expectation."""
        return self.reachable == self.target.expect_reachable


class ProbeRunner:
    """Runs verification probes in order.

    A failed required probe raises immediately, so later probes do not
    run. Failed optional probes only warn.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: CommandExecutor,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self.ctx = ctx
        self.executor = executor
        self.connect_timeout = connect_timeout

    def is_reachable(self, url: str) -> bool:
        """Check whether an HTTP(S) request to the URL completes."""
        result = self.executor.run(
            ["curl", "--silent", "--output", "/dev/null",
             "--connect-timeout", str(self.connect_timeout), url],
            check=False,
            read_only=True,
        )
        return result.success

    def probe(self, target: ProbeTarget) -> ProbeOutcome:
        """Run one probe and report it.

        Raises:
            VerificationError: If a required probe does not pass
        """
        if target.purpose:
            self.ctx.console.step(f"Verifying {target.purpose} access ({target.url})")

        outcome = ProbeOutcome(target=target, reachable=self.is_reachable(target.url))

        if outcome.passed:
            self.ctx.console.success(_pass_message(target))
        elif target.required:
            raise VerificationError(
                _fail_message(target),
                url=target.url,
                hint="Inspect the rules with: iptables -L -n -v",
            )
        else:
            warning = f"Unable to reach {target.url}"
            if target.impact:
                warning += f" - {target.impact}"
            self.ctx.console.warn(warning)

        return outcome

    def run_all(self, targets: list[ProbeTarget]) -> list[ProbeOutcome]:
        """Run probes in order, stopping at the first failed required one."""
        self.ctx.console.step("Verifying firewall rules")
        return [self.probe(target) for target in targets]


def _pass_message(target: ProbeTarget) -> str:
    if not target.expect_reachable:
        return f"Firewall verification passed - unable to reach {target.url} as expected"
    if target.purpose:
        return f"Firewall verification passed - able to reach {target.url} for {target.purpose}"
    return f"Firewall verification passed - able to reach {target.url} as expected"


def _fail_message(target: ProbeTarget) -> str:
    if not target.expect_reachable:
        return f"Firewall verification failed - was able to reach {target.url}"
    return f"Firewall verification failed - unable to reach {target.url}"
