"""Domain string canonicalization."""

import re

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
_WWW = re.compile(r"^www\.", re.IGNORECASE)


def normalize_domain(raw: str | None) -> str:
    """Canonicalize a domain for comparison.

    Strips surrounding whitespace, a leading ``http://`` or ``https://``,
    a leading ``www.`` and any trailing slashes, then lowercases.

    Args:
        raw: Domain as typed by an operator or stored by older tooling.

    Returns:
        The canonical domain, or an empty string for empty input.
    """
    if not raw:
        return ""
    value = raw.lower()
    # Prefixes and suffixes can nest, strip until stable
    while True:
        stripped = value.strip()
        stripped = _SCHEME.sub("", stripped)
        stripped = _WWW.sub("", stripped)
        stripped = stripped.rstrip("/")
        if stripped == value:
            return value
        value = stripped


def is_normalized(raw: str) -> bool:
    """Check whether a stored domain is already in canonical form."""
    return raw == normalize_domain(raw)
