"""Input validation utilities.

The allowlist trusts only what it can check: ranges from the GitHub meta
response must be exact dotted-quad CIDRs, and DNS answers must be exact
dotted-quad addresses. Values built into the configuration are trusted
as written.
"""

import ipaddress
import re

from egress.core.exceptions import ValidationError


# Exact dotted-quad with prefix length, e.g. 192.30.252.0/22
CIDR_PATTERN = re.compile(r"^[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}/[0-9]{1,2}$")

# Exact dotted-quad address, e.g. 104.16.0.35
IPV4_PATTERN = re.compile(r"^[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}$")


def is_dotted_quad_cidr(value: str) -> bool:
    """Check a string against the strict CIDR pattern."""
    return bool(CIDR_PATTERN.match(value))


def is_dotted_quad(value: str) -> bool:
    """Check a string against the strict IPv4 address pattern."""
    return bool(IPV4_PATTERN.match(value))


def validate_cidr(value: str, *, source: str = "input") -> ipaddress.IPv4Network:
    """Validate a strict dotted-quad CIDR and parse it.

    Host bits are allowed and masked off, matching how the range
    aggregator treats them.

    Args:
        value: CIDR string (e.g. "140.82.112.0/20")
        source: Where the value came from, for the error message

    Returns:
        Parsed IPv4 network

    Raises:
        ValidationError: If the value is not a valid dotted-quad CIDR
    """
    if not isinstance(value, str) or not is_dotted_quad_cidr(value):
        raise ValidationError(
            f"Invalid CIDR range from {source}: {value}",
        )

    try:
        return ipaddress.IPv4Network(value, strict=False)
    except ValueError as e:
        raise ValidationError(
            f"Invalid CIDR range from {source}: {value}",
            details=[str(e)],
        ) from e
