"""Unit tests for host network detection."""

import pytest
from unittest.mock import Mock

from egress.core.executor import CommandResult
from egress.core.exceptions import NetworkDetectionError
from egress.services.network import (
    parse_default_gateway,
    detect_default_gateway,
    derive_host_network,
)


ROUTES = """default via 172.17.0.1 dev eth0
172.17.0.0/16 dev eth0 proto kernel scope link src 172.17.0.2
"""


def _executor(stdout, code=0):
    mock = Mock()
    mock.run.return_value = CommandResult(
        command=["ip", "route"], return_code=code, stdout=stdout, stderr="",
    )
    return mock


class TestParseDefaultGateway:
    """Tests for parse_default_gateway."""

    def test_docker_route_table(self):
        assert parse_default_gateway(ROUTES) == "172.17.0.1"

    def test_extra_attributes(self):
        output = "default via 10.0.5.1 dev ens3 proto dhcp src 10.0.5.23 metric 100\n"
        assert parse_default_gateway(output) == "10.0.5.1"

    def test_first_default_wins(self):
        output = "default via 10.0.5.1 dev eth0\ndefault via 192.168.1.1 dev wlan0 metric 600\n"
        assert parse_default_gateway(output) == "10.0.5.1"

    def test_no_default_route(self):
        assert parse_default_gateway("10.0.0.0/8 dev eth0 scope link\n") is None

    def test_default_without_gateway(self):
        assert parse_default_gateway("default dev wg0 scope link\n") is None

    def test_empty(self):
        assert parse_default_gateway("") is None


class TestDetectDefaultGateway:
    """Tests for detect_default_gateway."""

    def test_reads_ip_route(self):
        executor = _executor(ROUTES)
        assert detect_default_gateway(executor) == "172.17.0.1"
        assert executor.run.call_args.args[0] == ["ip", "route"]
        assert executor.run.call_args.kwargs["read_only"] is True

    def test_missing_default_aborts(self):
        with pytest.raises(NetworkDetectionError) as exc:
            detect_default_gateway(_executor("172.17.0.0/16 dev eth0\n"))
        assert "Failed to detect host IP" in str(exc.value)
        assert exc.value.exit_code == 21

    def test_ip_failure_aborts(self):
        with pytest.raises(NetworkDetectionError):
            detect_default_gateway(_executor("", code=1))


class TestDeriveHostNetwork:
    """Tests for derive_host_network."""

    def test_gateway_10_0_5_1(self):
        assert derive_host_network("10.0.5.1") == "10.0.5.0/24"

    def test_docker_gateway(self):
        assert derive_host_network("172.17.0.1") == "172.17.0.0/24"

    def test_ignores_real_subnet(self):
        """Always the gateway's /24, even for a /16 network."""
        assert derive_host_network("192.168.1.254") == "192.168.1.0/24"
