"""Unit tests for the ipset service."""

import pytest
from unittest.mock import Mock

from egress.core.context import ExecutionContext
from egress.core.executor import CommandResult
from egress.core.exceptions import FirewallError
from egress.services.ipset import IpsetService, SET_TYPE


def _result(command, code=0, stderr=""):
    return CommandResult(command=command, return_code=code, stdout="", stderr=stderr)


@pytest.fixture
def executor():
    mock = Mock()
    mock.run.side_effect = lambda command, **kw: _result(command)
    return mock


@pytest.fixture
def ipset(executor):
    return IpsetService(ExecutionContext(_console=Mock()), executor)


class TestIpsetService:
    """Tests for IpsetService."""

    def test_create_uses_hash_net(self, ipset, executor):
        ipset.create("allowed-domains")
        executor.run.assert_called_once()
        assert executor.run.call_args.args[0] == ["ipset", "create", "allowed-domains", "hash:net"]
        assert SET_TYPE == "hash:net"

    def test_add_tolerates_duplicates(self, ipset, executor):
        ipset.add("allowed-domains", "140.82.112.0/20")
        assert executor.run.call_args.args[0] == [
            "ipset", "add", "allowed-domains", "140.82.112.0/20", "-exist",
        ]

    def test_destroy_ignores_missing_set(self, ipset, executor):
        executor.run.side_effect = lambda command, **kw: _result(
            command, 1, "ipset v7.15: The set with the given name does not exist"
        )
        ipset.destroy("allowed-domains")
        assert executor.run.call_args.args[0] == ["ipset", "destroy", "allowed-domains"]

    def test_add_failure_raises(self, ipset, executor):
        executor.run.side_effect = lambda command, **kw: _result(
            command, 1, "ipset v7.15: Syntax error: '35.184.0.0/40' is invalid"
        )
        with pytest.raises(FirewallError) as exc:
            ipset.add("allowed-domains", "35.184.0.0/40")
        assert "ipset command failed" in str(exc.value)
        assert exc.value.exit_code == 15

    def test_create_failure_raises(self, ipset, executor):
        executor.run.side_effect = lambda command, **kw: _result(command, 1, "")
        with pytest.raises(FirewallError):
            ipset.create("allowed-domains")
