"""Unit tests for verification probes."""

import pytest
from unittest.mock import Mock

from egress.core.config import FirewallConfig, ProbeTarget
from egress.core.context import ExecutionContext
from egress.core.executor import CommandResult
from egress.core.exceptions import VerificationError
from egress.services.probe import ProbeRunner, ProbeOutcome


def _runner(reachable: dict[str, bool], timeout: int = 5):
    def run(command, **kwargs):
        code = 0 if reachable.get(command[-1], False) else 28
        return CommandResult(command=command, return_code=code, stdout="", stderr="")

    executor = Mock()
    executor.run.side_effect = run
    ctx = ExecutionContext(_console=Mock())
    return ProbeRunner(ctx, executor, connect_timeout=timeout), executor, ctx


BLOCKED = ProbeTarget(url="https://example.com", expect_reachable=False, required=True)
GITHUB = ProbeTarget(url="https://api.github.com/zen", required=True)
PUB_DEV = ProbeTarget(
    url="https://pub.dev",
    purpose="Flutter/Dart packages",
    impact="Flutter commands may still fail",
)


class TestProbeOutcome:
    """Tests for ProbeOutcome.passed."""

    def test_blocked_and_unreachable_passes(self):
        assert ProbeOutcome(target=BLOCKED, reachable=False).passed

    def test_blocked_but_reachable_fails(self):
        assert not ProbeOutcome(target=BLOCKED, reachable=True).passed

    def test_allowed_and_reachable_passes(self):
        assert ProbeOutcome(target=GITHUB, reachable=True).passed


class TestProbeRunner:
    """Tests for ProbeRunner."""

    def test_curl_uses_connect_timeout(self):
        runner, executor, _ = _runner({"https://api.github.com/zen": True}, timeout=7)
        runner.probe(GITHUB)

        command = executor.run.call_args.args[0]
        assert command[0] == "curl"
        assert command[command.index("--connect-timeout") + 1] == "7"
        assert command[-1] == "https://api.github.com/zen"

    def test_blocked_host_unreachable_passes(self):
        runner, _, ctx = _runner({})
        outcome = runner.probe(BLOCKED)

        assert outcome.passed
        assert "unable to reach https://example.com as expected" in ctx.console.success.call_args.args[0]

    def test_blocked_host_reachable_aborts(self):
        runner, _, _ = _runner({"https://example.com": True})

        with pytest.raises(VerificationError) as exc:
            runner.probe(BLOCKED)
        assert "was able to reach https://example.com" in str(exc.value)
        assert exc.value.exit_code == 22

    def test_required_host_unreachable_aborts(self):
        runner, _, _ = _runner({})

        with pytest.raises(VerificationError) as exc:
            runner.probe(GITHUB)
        assert "unable to reach https://api.github.com/zen" in str(exc.value)

    def test_optional_host_unreachable_warns(self):
        runner, _, ctx = _runner({})
        outcome = runner.probe(PUB_DEV)

        assert not outcome.passed
        warning = ctx.console.warn.call_args.args[0]
        assert "Unable to reach https://pub.dev" in warning
        assert "Flutter commands may still fail" in warning

    def test_run_all_stops_at_required_failure(self):
        runner, executor, _ = _runner({"https://example.com": True})

        with pytest.raises(VerificationError):
            runner.run_all([BLOCKED, GITHUB, PUB_DEV])
        assert executor.run.call_count == 1

    def test_run_all_default_probes(self):
        reachable = {p.url: p.expect_reachable for p in FirewallConfig().probes}
        reachable["https://cocoapods.org"] = False
        runner, executor, ctx = _runner(reachable)

        outcomes = runner.run_all(FirewallConfig().probes)

        assert len(outcomes) == 5
        assert [o.passed for o in outcomes] == [True, True, True, True, False]
        assert "iOS builds may fail" in ctx.console.warn.call_args.args[0]
