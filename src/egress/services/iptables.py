"""iptables programming for the apply pipeline.

The pipeline resets the filter, nat and mangle tables, opens DNS, SSH,
loopback and the host network, then sets DROP policies and accepts only
established traffic and destinations in the allowlist ipset.

Rules are appended, so call order is rule order. First match wins.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from egress.core.context import ExecutionContext
from egress.core.executor import CommandExecutor, CommandResult
from egress.core.exceptions import FirewallError


# Tables cleared on reset, in order
TABLES = ("filter", "nat", "mangle")

DNS_PORT = 53
SSH_PORT = 22


class Protocol(str, Enum):
    """Network protocol."""
    TCP = "tcp"
    UDP = "udp"
    ALL = "all"


class Action(str, Enum):
    """Firewall rule action."""
    ACCEPT = "ACCEPT"
    DROP = "DROP"


class Chain(str, Enum):
    """Built-in filter chain."""
    INPUT = "INPUT"
    OUTPUT = "OUTPUT"
    FORWARD = "FORWARD"


@dataclass
class FirewallRule:
    """One iptables rule, rendered as arguments after `-A CHAIN`."""
    chain: Chain
    action: Action = Action.ACCEPT
    protocol: Protocol = Protocol.ALL
    source: Optional[str] = None
    destination: Optional[str] = None
    sport: Optional[int] = None
    dport: Optional[int] = None
    in_interface: Optional[str] = None
    out_interface: Optional[str] = None
    states: Optional[tuple[str, ...]] = None
    match_set: Optional[str] = None  # ipset name, matched on destination

    def to_iptables_args(self) -> list[str]:
        """Convert rule to iptables match and target arguments."""
        args = []

        if self.in_interface:
            args.extend(["-i", self.in_interface])

        if self.out_interface:
            args.extend(["-o", self.out_interface])

        if self.protocol != Protocol.ALL:
            args.extend(["-p", self.protocol.value])

        if self.source:
            args.extend(["-s", self.source])

        if self.destination:
            args.extend(["-d", self.destination])

        if self.sport is not None:
            args.extend(["--sport", str(self.sport)])

        if self.dport is not None:
            args.extend(["--dport", str(self.dport)])

        if self.states:
            args.extend(["-m", "state", "--state", ",".join(self.states)])

        if self.match_set:
            args.extend(["-m", "set", "--match-set", self.match_set, "dst"])

        args.extend(["-j", self.action.value])

        return args

    def __str__(self) -> str:
        """Human-readable representation."""
        parts = [self.chain.value, self.action.value]
        if self.protocol != Protocol.ALL:
            port = self.dport if self.dport is not None else self.sport
            parts.append(f"{self.protocol.value}/{port}" if port else self.protocol.value)
        if self.in_interface:
            parts.append(f"in {self.in_interface}")
        if self.out_interface:
            parts.append(f"out {self.out_interface}")
        if self.source:
            parts.append(f"from {self.source}")
        if self.destination:
            parts.append(f"to {self.destination}")
        if self.states:
            parts.append(f"state {','.join(self.states)}")
        if self.match_set:
            parts.append(f"set {self.match_set}")
        return " ".join(parts)


# Applied before any restriction so the configuring session survives
BOOTSTRAP_RULES: list[FirewallRule] = [
    FirewallRule(chain=Chain.OUTPUT, protocol=Protocol.UDP, dport=DNS_PORT),
    FirewallRule(chain=Chain.INPUT, protocol=Protocol.UDP, sport=DNS_PORT),
    FirewallRule(chain=Chain.OUTPUT, protocol=Protocol.TCP, dport=SSH_PORT),
    FirewallRule(
        chain=Chain.INPUT,
        protocol=Protocol.TCP,
        sport=SSH_PORT,
        states=("ESTABLISHED",),
    ),
    FirewallRule(chain=Chain.INPUT, in_interface="lo"),
    FirewallRule(chain=Chain.OUTPUT, out_interface="lo"),
]

ESTABLISHED_RULES: list[FirewallRule] = [
    FirewallRule(chain=Chain.INPUT, states=("ESTABLISHED", "RELATED")),
    FirewallRule(chain=Chain.OUTPUT, states=("ESTABLISHED", "RELATED")),
]


def host_network_rules(network: str) -> list[FirewallRule]:
    """Rules permitting traffic to and from the host's local network."""
    return [
        FirewallRule(chain=Chain.INPUT, source=network),
        FirewallRule(chain=Chain.OUTPUT, destination=network),
    ]


def allowlist_rule(set_name: str) -> FirewallRule:
    """Rule permitting outbound traffic whose destination is in the set."""
    return FirewallRule(chain=Chain.OUTPUT, match_set=set_name)


class IptablesService:
    """Interface for programming the IPv4 packet filter.

    The service assumes exclusive access to the host's tables for the
    duration of a run; -w only serializes individual commands.
    """

    def __init__(self, ctx: ExecutionContext, executor: CommandExecutor) -> None:
        self.ctx = ctx
        self.executor = executor

    # =========================================================================
    # Reset
    # =========================================================================

    def reset(self) -> None:
        """Flush every chain and delete user chains in all managed tables."""
        self.ctx.console.step("Flushing iptables rules")
        for table in TABLES:
            self._run_iptables(["-t", table, "-F"])
            self._run_iptables(["-t", table, "-X"])

    # =========================================================================
    # Rule Management
    # =========================================================================

    def append_rule(self, rule: FirewallRule) -> None:
        """Append a rule to the end of its chain.

        Raises:
            FirewallError: If iptables rejects the rule
        """
        self.ctx.console.debug(f"Adding rule: {rule}")
        self._run_iptables(["-A", rule.chain.value] + rule.to_iptables_args(), rule=rule)

    def set_policy(self, chain: Chain, policy: Action) -> None:
        """Set the default policy of a built-in chain."""
        self._run_iptables(["-P", chain.value, policy.value])

    def allow_bootstrap(self) -> None:
        """Allow DNS, SSH and loopback before anything is restricted."""
        self.ctx.console.step("Allowing DNS, SSH and loopback traffic")
        for rule in BOOTSTRAP_RULES:
            self.append_rule(rule)

    def allow_host_network(self, network: str) -> None:
        """Allow bidirectional traffic with the host network."""
        self.ctx.console.step(f"Allowing host network {network}")
        for rule in host_network_rules(network):
            self.append_rule(rule)

    def lock_down(self, set_name: str) -> None:
        """Switch to default-deny and re-permit only approved traffic.

        Policies go to DROP first; established/related traffic and
        destinations in the allowlist set are then accepted.
        """
        self.ctx.console.step("Setting default policies to DROP")
        for chain in (Chain.INPUT, Chain.FORWARD, Chain.OUTPUT):
            self.set_policy(chain, Action.DROP)

        self.ctx.console.step("Allowing established connections")
        for rule in ESTABLISHED_RULES:
            self.append_rule(rule)

        self.ctx.console.step(f"Allowing outbound traffic to ipset {set_name}")
        self.append_rule(allowlist_rule(set_name))

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _run_iptables(
        self,
        args: list[str],
        *,
        rule: Optional[FirewallRule] = None,
    ) -> CommandResult:
        """Run `iptables -w ARGS`, raising FirewallError on failure.

        rule, when given, is attached to the error for context.
        """
        # -w waits for the xtables lock instead of failing
        cmd = ["iptables", "-w"] + args
        result = self.executor.run(cmd, check=False)

        if not result.success:
            raise FirewallError(
                f"iptables command failed: {' '.join(cmd)}",
                rule=str(rule) if rule else None,
                chain=rule.chain.value if rule else None,
                details=[result.stderr.strip()] if result.stderr.strip() else None,
            )

        return result
