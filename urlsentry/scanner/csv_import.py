"""CSV batch import."""

from __future__ import annotations

import re

from ..constants import MAX_CSV_BYTES
from ..errors import ValidationError
from ..utils.domains import extract_domain, is_valid_url

_QUOTED_RE = re.compile(r"""^["'](.*)["']$""")
_HEADER_NAMES = {"url", "urls", "domain", "domains", "website"}


def _decode(content: bytes | str) -> tuple[str, int]:
    if isinstance(content, bytes):
        return content.decode("utf-8-sig", errors="replace"), len(content)
    return content, len(content.encode("utf-8"))


def parse_domains_csv(content: bytes | str, *, max_bytes: int = MAX_CSV_BYTES) -> list[str]:
    """Extract one domain per line from CSV content.

    The first comma-separated column is used; surrounding quotes are
    stripped and each value is reduced with ``extract_domain``. Order and
    duplicates are preserved.
    """
    text, size = _decode(content)
    if size > max_bytes:
        raise ValidationError(f"File size should be less than {max_bytes // (1024 * 1024)}MB")

    domains: list[str] = []
    for index, line in enumerate(text.splitlines()):
        first = line.split(",", 1)[0].strip()
        first = _QUOTED_RE.sub(r"\1", first).strip()
        if index == 0 and first.lower() in _HEADER_NAMES:
            continue
        if not first or not is_valid_url(first):
            continue
        domain = extract_domain(first)
        if domain:
            domains.append(domain)

    if not domains:
        raise ValidationError("No valid domains found in the CSV file")
    return domains


def validate_csv_filename(filename: str | None) -> None:
    if filename and not filename.lower().endswith(".csv"):
        raise ValidationError("Please upload a CSV file")
