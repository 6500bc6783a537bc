"""GitHub meta endpoint client and range aggregation.

GitHub publishes the address ranges behind its web, API and git
services at https://api.github.com/meta. Those ranges are the only
allowlist input that arrives over the network, so every entry is held
to the strict dotted-quad CIDR pattern before anything is added.
"""

import ipaddress
import json
import urllib.error
import urllib.request
from typing import Any

from egress import __version__
from egress.core.exceptions import MetadataError
from egress.core.output import console
from egress.core.validation import validate_cidr


USER_AGENT = f"egress-fw/{__version__}"


def fetch_meta(url: str, timeout: int = 30) -> dict[str, Any]:
    """Fetch and decode the GitHub meta document.

    Args:
        url: Meta endpoint URL
        timeout: Request timeout in seconds

    Returns:
        Decoded JSON document

    Raises:
        MetadataError: If the request fails, the body is empty or not JSON
    """
    request = urllib.request.Request(
        url,
        headers={
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        },
    )

    console.debug(f"GET {url}")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except (urllib.error.URLError, OSError) as e:
        raise MetadataError(
            "Failed to fetch GitHub IP ranges",
            details=[f"{url}: {e}"],
            hint="Check DNS and outbound HTTPS connectivity",
        ) from e

    if not body or not body.strip():
        raise MetadataError(
            "Failed to fetch GitHub IP ranges",
            details=[f"{url} returned an empty response"],
        )

    try:
        return json.loads(body)
    except ValueError as e:
        raise MetadataError(
            "GitHub API response is not valid JSON",
            details=[str(e)],
        ) from e


def validate_meta(data: Any, fields: list[str]) -> None:
    """Check the meta document carries every required range list.

    A field counts as present unless it is missing, null or false; an
    empty list is accepted.

    Raises:
        MetadataError: If any field is missing or not a list
    """
    if not isinstance(data, dict):
        raise MetadataError("GitHub API response missing required fields")

    missing = [f for f in fields if data.get(f) is None or data.get(f) is False]
    if missing:
        raise MetadataError(
            "GitHub API response missing required fields",
            details=[f"Missing: {', '.join(missing)}"],
        )

    not_lists = [f for f in fields if not isinstance(data[f], list)]
    if not_lists:
        raise MetadataError(
            "GitHub API response has malformed range fields",
            details=[f"Not a list: {', '.join(not_lists)}"],
        )


def collect_ranges(data: dict[str, Any], fields: list[str]) -> list[Any]:
    """Concatenate the range lists in field order."""
    ranges: list[Any] = []
    for field in fields:
        ranges.extend(data[field])
    return ranges


def aggregate_ranges(entries: list[Any]) -> list[str]:
    """Validate IPv4 ranges and collapse them to a minimal covering set.

    IPv6 ranges are dropped because the set is IPv4-only. Every other
    entry must be a strict dotted-quad CIDR; one bad entry rejects the
    whole list.

    Args:
        entries: Raw range strings from the meta document

    Returns:
        Collapsed CIDR strings, sorted by address

    Raises:
        ValidationError: On the first malformed entry
    """
    networks = []
    skipped_v6 = 0

    for entry in entries:
        if isinstance(entry, str) and ":" in entry:
            skipped_v6 += 1
            continue
        networks.append(validate_cidr(entry, source="GitHub meta"))

    if skipped_v6:
        console.debug(f"Skipped {skipped_v6} IPv6 ranges")

    return [str(n) for n in ipaddress.collapse_addresses(networks)]


def fetch_github_ranges(url: str, fields: list[str], timeout: int = 30) -> list[str]:
    """Fetch, validate and aggregate GitHub's published ranges.

    Raises:
        MetadataError: If the document cannot be fetched or is incomplete
        ValidationError: If any IPv4 range is malformed
    """
    data = fetch_meta(url, timeout=timeout)
    validate_meta(data, fields)
    return aggregate_ranges(collect_ranges(data, fields))
