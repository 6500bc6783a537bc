"""Checks run before the first iptables command.

A failed critical check stops the run while the host's existing rules
are still intact. Non-critical checks only warn.
"""

import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from egress.core.exceptions import PrerequisiteError
from egress.core.output import console


# Everything the apply pipeline shells out to
REQUIRED_COMMANDS = ("iptables", "ipset", "dig", "ip", "curl")

# Services that also program netfilter and would overwrite our rules
CONFLICTING_SERVICES = ("ufw", "firewalld")


class CheckResult(Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True)
class PreflightResult:
    check_name: str
    result: CheckResult
    message: str
    remediation: Optional[str] = None


class PreflightCheck(ABC):
    """One precondition of a firewall run."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def critical(self) -> bool:
        """Whether a FAIL stops the run."""
        ...

    @abstractmethod
    def run(self) -> PreflightResult:
        ...

    def _result(
        self,
        result: CheckResult,
        message: str,
        remediation: Optional[str] = None,
    ) -> PreflightResult:
        return PreflightResult(self.name, result, message, remediation)


class RootCheck(PreflightCheck):
    """iptables and ipset need CAP_NET_ADMIN; in practice, root."""

    name = "Root/Sudo Verification"
    critical = True

    def run(self) -> PreflightResult:
        if os.geteuid() == 0:
            return self._result(CheckResult.PASS, "Running as root")
        return self._result(
            CheckResult.FAIL,
            "Must be run as root or with sudo",
            "Run with: sudo egress-fw apply",
        )


class RequiredCommandsCheck(PreflightCheck):
    name = "Required Commands"
    critical = True

    def run(self) -> PreflightResult:
        missing = [cmd for cmd in REQUIRED_COMMANDS if shutil.which(cmd) is None]
        if not missing:
            return self._result(CheckResult.PASS, f"Found: {', '.join(REQUIRED_COMMANDS)}")
        return self._result(
            CheckResult.FAIL,
            f"Missing: {', '.join(missing)}",
            "apt-get install iptables ipset dnsutils iproute2 curl",
        )


class FirewallProviderCheck(PreflightCheck):
    """Warn when ufw or firewalld is running alongside us."""

    name = "Firewall Providers"
    critical = False

    def run(self) -> PreflightResult:
        active = [svc for svc in CONFLICTING_SERVICES if self._is_active(svc)]
        if not active:
            return self._result(CheckResult.PASS, "No conflicting firewall service active")
        return self._result(
            CheckResult.WARN,
            f"Active: {', '.join(active)} (may rewrite the rules)",
            f"systemctl stop {' '.join(active)}",
        )

    @staticmethod
    def _is_active(service: str) -> bool:
        # No systemd (typical in containers) means nothing to conflict with
        try:
            result = subprocess.run(
                ["systemctl", "is-active", "--quiet", service],
                capture_output=True,
                timeout=5,
            )
        except (subprocess.TimeoutExpired, OSError):
            return False
        return result.returncode == 0


class PreflightRunner:
    """Runs checks in order, stopping at the first critical failure."""

    DEFAULT_CHECKS: list[type[PreflightCheck]] = [
        RootCheck,
        RequiredCommandsCheck,
        FirewallProviderCheck,
    ]

    def __init__(
        self,
        checks: Optional[list[type[PreflightCheck]]] = None,
        skip_root_check: bool = False,
    ) -> None:
        classes = checks or self.DEFAULT_CHECKS
        self.checks = [c() for c in classes if not (skip_root_check and c is RootCheck)]

    def run_all(self) -> list[PreflightResult]:
        results = []
        for check in self.checks:
            results.append(check.run())
            if check.critical and results[-1].result == CheckResult.FAIL:
                break
        return results

    def all_passed(self, results: list[PreflightResult]) -> bool:
        """WARN results do not count as failures."""
        return all(r.result != CheckResult.FAIL for r in results)

    def display_results(self, results: list[PreflightResult]) -> None:
        colors = {
            CheckResult.PASS: "green",
            CheckResult.WARN: "yellow",
            CheckResult.FAIL: "red",
        }
        console.rule("Pre-flight Checks")
        for r in results:
            color = colors[r.result]
            console.print(f"  [{color}]{r.result.name}[/{color}] {r.check_name}: {r.message}")
            if r.remediation and r.result != CheckResult.PASS:
                console.print(f"        [dim]Fix: {r.remediation}[/dim]")


def run_preflight_checks(dry_run: bool = False, verbose: bool = False) -> bool:
    """Run the default checks.

    Dry-run skips the root check since it changes nothing.

    Raises:
        PrerequisiteError: If a critical check fails
    """
    runner = PreflightRunner(skip_root_check=dry_run)
    results = runner.run_all()

    if verbose:
        runner.display_results(results)

    for r in results:
        if r.result == CheckResult.WARN:
            console.warn(f"{r.check_name}: {r.message}")

    failures = [r for r in results if r.result == CheckResult.FAIL]
    if failures:
        raise PrerequisiteError(
            "Pre-flight checks failed",
            details=[f"{r.check_name}: {r.message}" for r in failures],
            hint=next((r.remediation for r in failures if r.remediation), None),
        )

    return True
