"""
Egress Firewall - Default-deny outbound filtering for development hosts.

Resets iptables and ipset state, allowlists GitHub, package registries
and cloud storage ranges, then verifies the resulting policy.
"""

__version__ = "1.0.0"
__author__ = "Egress Firewall Team"
