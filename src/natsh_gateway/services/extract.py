"""
Derive bus addressing from an inbound HTTP request.

The subject is the final segment of the URL path. Bus headers come from HTTP
headers carrying a fixed prefix: the prefix is stripped and the first
character of what remains is lower-cased, nothing more. Names are put into
canonical MIME form first, so `Natsh-Trace-Id`, `natsh-trace-id` and
`NATSH-TRACE-ID` all become the bus header `trace-Id`.
"""
import re
from typing import Dict, List

from starlette.datastructures import Headers

from ..core.errors import MissingSubject

DEFAULT_HEADER_PREFIX = "Natsh-"
DEFAULT_TIMEOUT_MS = 5000

_UNSIGNED = re.compile(r"[0-9]+")
_UINT64_MAX = 2**64 - 1

# Longest a single request or stream may be held open (24 hours)
MAX_TIMEOUT_MS = 24 * 60 * 60 * 1000


def subject_from_path(path: str) -> str:
    """
    Return the final path segment as the bus subject.

    Raises:
        MissingSubject: If the final segment is empty (e.g. trailing slash)
    """
    subject = path.rsplit("/", 1)[-1]
    if not subject:
        raise MissingSubject()
    return subject


def canonical_header_key(name: str) -> str:
    """Upper-case the first letter and every letter after a hyphen, lower the rest."""
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def lower_first(value: str) -> str:
    return value[:1].lower() + value[1:]


def bus_headers(headers: Headers, prefix: str = DEFAULT_HEADER_PREFIX) -> Dict[str, List[str]]:
    """
    Map prefixed HTTP headers onto bus headers.

    Only the first value seen for each bridged key is kept; repeated headers
    are dropped.
    """
    canonical_prefix = canonical_header_key(prefix)
    bridged: Dict[str, List[str]] = {}

    for name, value in headers.items():
        key = canonical_header_key(name)
        if not key.startswith(canonical_prefix):
            continue
        bus_key = lower_first(key[len(canonical_prefix):])
        if bus_key and bus_key not in bridged:
            bridged[bus_key] = [value]

    return bridged


def parse_timeout(raw: str | None, default_ms: int = DEFAULT_TIMEOUT_MS) -> float:
    """
    Parse a millisecond `timeout` query value into seconds.

    Anything but a positive unsigned decimal integer yields the default, as
    does a value past the 64-bit range. Valid values above MAX_TIMEOUT_MS
    are clamped to it.
    """
    if raw and _UNSIGNED.fullmatch(raw):
        millis = int(raw)
        if 0 < millis <= _UINT64_MAX:
            return min(millis, MAX_TIMEOUT_MS) / 1000
    return default_ms / 1000
