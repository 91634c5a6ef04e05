"""Domain normalization utilities."""

from __future__ import annotations

import re
from urllib.parse import urlparse

_SCHEME_WWW_RE = re.compile(r"^(https?://)?(www\.)?", re.IGNORECASE)
_HAS_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def extract_domain(value: str | None) -> str:
    """
    Reduce a user-supplied URL to the bare domain used as the record key.

    - Strip an optional http:// or https:// scheme (case-insensitive)
    - Strip an optional leading "www."
    - Keep everything before the first "/"

    Never raises; empty or malformed input yields an empty/degenerate domain.
    """
    raw = (value or "").strip()
    if not raw:
        return ""
    stripped = _SCHEME_WWW_RE.sub("", raw, count=1)
    domain = stripped.split("/", 1)[0].strip()
    # Repeated prefixes ("www.www.") collapse so extraction is idempotent.
    while domain[:4].lower() == "www.":
        domain = domain[4:].strip()
    return domain


def ensure_url(value: str) -> str:
    """Prefix a scheme when the value has none."""
    raw = (value or "").strip()
    if not raw:
        return ""
    if _HAS_SCHEME_RE.match(raw):
        return raw
    return f"http://{raw}"


def is_valid_url(value: str | None) -> bool:
    """Best-effort check that a value parses as a URL with a host."""
    raw = (value or "").strip()
    if not raw or any(ch.isspace() for ch in raw):
        return False
    try:
        parsed = urlparse(ensure_url(raw))
        host = parsed.hostname
        # Accessing .port validates the port component.
        parsed.port
    except ValueError:
        return False
    return bool(host)


def format_url_for_display(url: str | None, max_length: int = 50) -> str:
    """Drop scheme/www and truncate long URLs for table output."""
    if not url:
        return ""
    display = _SCHEME_WWW_RE.sub("", url, count=1)
    if len(display) > max_length:
        display = display[: max(0, max_length - 3)] + "..."
    return display
