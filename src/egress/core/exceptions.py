"""Fatal errors for egress-fw.

Every exception here aborts the run at the stage that raised it and maps
to its own process exit code, so wrapper scripts can tell a metadata
outage (20) from a rejected rule (15). Advisory problems such as an
unresolvable domain are printed with console.warn() and never raise.
"""

from typing import Optional


class EgressError(Exception):
    """Base class. Carries what the CLI prints before exiting.

    Attributes:
        message: One-line description, printed after [ERROR]
        hint: Optional next step for the operator
        details: Extra lines, e.g. the stderr of a failed command
        exit_code: Process exit status
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = list(details) if details else []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(EgressError):
    """The config file or an EGRESS_FW_* variable is unusable."""
    exit_code = 2


class ValidationError(EgressError):
    """A GitHub meta range is not a valid dotted-quad CIDR."""
    exit_code = 3


class ExecutionError(EgressError):
    """A subprocess failed, timed out or was not installed."""
    exit_code = 5

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        return_code: Optional[int] = None,
        stderr: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if return_code is not None:
            details.append(f"Exit code: {return_code}")
        if stderr:
            details.append(f"Error output: {stderr.strip()}")
        super().__init__(message, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class PrerequisiteError(EgressError):
    """Missing prerequisites.

    Raised when:
    - Required command not found (iptables, ipset, dig, ip, curl)
    - Insufficient permissions
    """
    exit_code = 6


# Domain-specific exceptions

class FirewallError(EgressError):
    """Firewall/iptables/ipset errors.

    Raised when:
    - iptables command fails
    - ipset command fails
    """
    exit_code = 15

    def __init__(
        self,
        message: str,
        *,
        rule: Optional[str] = None,
        chain: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.rule = rule
        self.chain = chain


class MetadataError(EgressError):
    """GitHub meta endpoint errors.

    Raised when:
    - The endpoint cannot be reached or returns an empty body
    - The body is not JSON
    - Required range fields are missing
    """
    exit_code = 20


class NetworkDetectionError(EgressError):
    """Host network detection errors.

    Raised when:
    - No default route is present
    """
    exit_code = 21


class VerificationError(EgressError):
    """Post-configuration verification failures.

    Raised when:
    - A host that should be blocked is reachable
    - A required allowlisted host is unreachable
    """
    exit_code = 22

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.url = url
