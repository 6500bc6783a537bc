"""DNS resolution of allowlisted domains via dig."""

from dataclasses import dataclass, field

from egress.core.executor import CommandExecutor
from egress.core.exceptions import ExecutionError
from egress.core.validation import is_dotted_quad


DIG_TIMEOUT = 30


@dataclass
class Resolution:
    """A-record lookup result for one domain.

    rejected holds answer lines that are not plain IPv4 addresses, such
    as CNAME targets printed by dig +short.
    """
    domain: str
    addresses: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    error: str = ""

    @property
    def resolved(self) -> bool:
        """True when the lookup produced any answer at all."""
        return bool(self.addresses or self.rejected)


class DomainResolver:
    """Resolves domains one at a time; failures never raise."""

    def __init__(self, executor: CommandExecutor) -> None:
        self.executor = executor

    def resolve(self, domain: str) -> Resolution:
        """Look up A records for a domain.

        Args:
            domain: Hostname to resolve

        Returns:
            Resolution with accepted and rejected answers
        """
        resolution = Resolution(domain=domain)

        try:
            result = self.executor.run(
                ["dig", "+short", "A", domain],
                check=False,
                read_only=True,
                timeout=DIG_TIMEOUT,
            )
        except ExecutionError as e:
            resolution.error = e.message
            return resolution

        if not result.success:
            resolution.error = result.stderr.strip() or f"dig exited {result.return_code}"
            return resolution

        for line in result.stdout.splitlines():
            answer = line.strip()
            if not answer:
                continue
            if is_dotted_quad(answer):
                resolution.addresses.append(answer)
            else:
                resolution.rejected.append(answer)

        return resolution
