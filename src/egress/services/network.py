"""Host network detection.

Provides:
- Default gateway discovery from the route table
- Derivation of the local /24 the firewall keeps open
"""

import re
from typing import Optional

from egress.core.executor import CommandExecutor
from egress.core.exceptions import NetworkDetectionError


LAST_OCTET_PATTERN = re.compile(r"\.[0-9]*$")


def parse_default_gateway(route_output: str) -> Optional[str]:
    """Extract the gateway of the first default route.

    Args:
        route_output: Output of `ip route`

    Returns:
        Gateway address, or None if no default route has one
    """
    for line in route_output.splitlines():
        parts = line.split()
        if not parts or parts[0] != "default":
            continue
        # Format: default via GATEWAY dev IFACE ...
        if "via" in parts:
            i = parts.index("via")
            if i + 1 < len(parts):
                return parts[i + 1]
    return None


def detect_default_gateway(executor: CommandExecutor) -> str:
    """Read the route table and return the default gateway.

    Raises:
        NetworkDetectionError: If there is no default route
    """
    result = executor.run(["ip", "route"], read_only=True, check=False)
    gateway = parse_default_gateway(result.stdout) if result.success else None

    if not gateway:
        raise NetworkDetectionError(
            "Failed to detect host IP",
            details=["No default route with a gateway in `ip route`"],
            hint="Check the container or host has a default route",
        )

    return gateway


def derive_host_network(gateway: str) -> str:
    """Turn a gateway address into its /24 network.

    The last dotted component is replaced with 0/24, so 10.0.5.1
    becomes 10.0.5.0/24 whatever the real subnet size is. The result
    is not validated.
    """
    return LAST_OCTET_PATTERN.sub(".0/24", gateway)
