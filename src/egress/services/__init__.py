"""Service abstractions for the external tools the firewall drives."""

from egress.services.iptables import IptablesService
from egress.services.ipset import IpsetService
from egress.services.dns import DomainResolver
from egress.services.probe import ProbeRunner

__all__ = [
    "IptablesService",
    "IpsetService",
    "DomainResolver",
    "ProbeRunner",
]
