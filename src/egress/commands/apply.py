"""Firewall apply pipeline.

Runs every stage once, top to bottom:

1. Reset iptables tables and the allowlist set
2. Bootstrap DNS, SSH and loopback rules
3. Build the allowlist (GitHub ranges, resolved domains, static CIDRs)
4. Allow the host /24
5. Lock down to default-deny
6. Verify with reachability probes

Any fatal error aborts immediately and leaves the firewall as the last
successful command left it. There is no rollback.
"""

from dataclasses import dataclass, field

from egress.core.config import FirewallConfig
from egress.core.context import ExecutionContext
from egress.core.executor import CommandExecutor
from egress.core.safety import run_preflight_checks
from egress.services.dns import DomainResolver
from egress.services.github_meta import fetch_github_ranges
from egress.services.ipset import IpsetService
from egress.services.iptables import IptablesService
from egress.services.network import derive_host_network, detect_default_gateway
from egress.services.probe import ProbeOutcome, ProbeRunner


@dataclass
class ApplySummary:
    """Counts reported at the end of a run."""
    github_ranges: int = 0
    domain_addresses: int = 0
    static_ranges: int = 0
    skipped_domains: list[str] = field(default_factory=list)
    host_network: str = ""
    probes: list[ProbeOutcome] = field(default_factory=list)

    @property
    def probe_warnings(self) -> int:
        return sum(1 for p in self.probes if not p.passed)


@dataclass
class FirewallServices:
    """Services used by the pipeline, sharing one executor."""
    executor: CommandExecutor
    iptables: IptablesService
    ipset: IpsetService
    resolver: DomainResolver
    probes: ProbeRunner


def build_services(ctx: ExecutionContext, config: FirewallConfig) -> FirewallServices:
    """Create the services for a run."""
    executor = CommandExecutor(ctx)
    return FirewallServices(
        executor=executor,
        iptables=IptablesService(ctx, executor),
        ipset=IpsetService(ctx, executor),
        resolver=DomainResolver(executor),
        probes=ProbeRunner(ctx, executor, connect_timeout=config.probe_timeout),
    )


def reset_firewall(services: FirewallServices, config: FirewallConfig) -> None:
    """Clear all rules and destroy the previous allowlist set."""
    services.iptables.reset()
    services.ipset.destroy(config.ipset_name)


def add_github_ranges(
    ctx: ExecutionContext,
    services: FirewallServices,
    config: FirewallConfig,
) -> int:
    """Fetch GitHub's ranges and add them to the set.

    Every range is validated before the first one is added.
    """
    ctx.console.step("Fetching GitHub IP ranges")
    ranges = fetch_github_ranges(
        config.github_meta_url,
        config.github_meta_fields,
        timeout=config.meta_timeout,
    )

    ctx.console.step("Processing GitHub IPs")
    for cidr in ranges:
        ctx.console.verbose(f"Adding GitHub range {cidr}")
        services.ipset.add(config.ipset_name, cidr)

    ctx.console.info(f"Added {len(ranges)} GitHub ranges")
    return len(ranges)


def add_domain_addresses(
    ctx: ExecutionContext,
    services: FirewallServices,
    config: FirewallConfig,
    summary: ApplySummary,
) -> None:
    """Resolve each domain and add its IPv4 addresses to the set.

    Resolution problems are warnings; the next domain is always tried.
    """
    for domain in config.domains:
        ctx.console.verbose(f"Resolving {domain}...")
        resolution = services.resolver.resolve(domain)

        if not resolution.resolved:
            if resolution.error:
                ctx.console.debug(f"dig {domain}: {resolution.error}")
            ctx.console.warn(f"Failed to resolve {domain}, skipping...")
            summary.skipped_domains.append(domain)
            continue

        for answer in resolution.rejected:
            ctx.console.warn(f"Invalid IP from DNS for {domain}: {answer}, skipping...")

        for ip in resolution.addresses:
            ctx.console.verbose(f"Adding {ip} for {domain}")
            services.ipset.add(config.ipset_name, ip)
            summary.domain_addresses += 1


def add_static_ranges(
    ctx: ExecutionContext,
    services: FirewallServices,
    config: FirewallConfig,
) -> int:
    """Add the configured literal ranges to the set as written."""
    ctx.console.step("Adding Google Cloud Storage ranges")
    for cidr in config.static_cidrs:
        ctx.console.verbose(f"Adding Google Cloud range {cidr}")
        services.ipset.add(config.ipset_name, cidr)
    return len(config.static_cidrs)


def allow_host_network(ctx: ExecutionContext, services: FirewallServices) -> str:
    """Detect the host /24 from the default gateway and allow it."""
    gateway = detect_default_gateway(services.executor)
    network = derive_host_network(gateway)
    ctx.console.info(f"Host network detected as: {network}")
    services.iptables.allow_host_network(network)
    return network


def run_apply(ctx: ExecutionContext, config: FirewallConfig) -> ApplySummary:
    """Configure the egress firewall and verify it.

    Args:
        ctx: Execution context
        config: Firewall configuration

    Returns:
        Summary of what was allowed and how verification went

    Raises:
        EgressError: Any fatal condition; the run stops where it failed
    """
    summary = ApplySummary()

    ctx.console.step("Running preflight checks")
    run_preflight_checks(dry_run=ctx.dry_run, verbose=ctx.is_verbose)

    services = build_services(ctx, config)

    reset_firewall(services, config)
    services.iptables.allow_bootstrap()

    services.ipset.create(config.ipset_name)
    summary.github_ranges = add_github_ranges(ctx, services, config)
    add_domain_addresses(ctx, services, config, summary)
    summary.static_ranges = add_static_ranges(ctx, services, config)

    summary.host_network = allow_host_network(ctx, services)

    services.iptables.lock_down(config.ipset_name)
    ctx.console.success("Firewall configuration complete")

    if ctx.dry_run:
        ctx.console.dry_run_msg("Verify firewall with reachability probes")
    else:
        summary.probes = services.probes.run_all(config.probes)

    return summary


def run_verify(ctx: ExecutionContext, config: FirewallConfig) -> list[ProbeOutcome]:
    """Run only the verification probes against the current policy.

    Raises:
        VerificationError: If a required probe fails
    """
    services = build_services(ctx, config)
    return services.probes.run_all(config.probes)
