"""Centralized constants for URL Sentry.

Shared enums and limits used across the scanner, store and dashboard
modules.
"""

from enum import Enum

# Scorer check-ins after which a domain counts as fully scored.
COMPLETION_THRESHOLD = 3

HISTORY_LIMIT = 50
HISTORY_STORAGE_KEY = "urlSentryHistory"

MAX_CSV_BYTES = 5 * 1024 * 1024

DOMAINS_TABLE = "domains"


class ScanStatus(str, Enum):
    """Normalized scan status (store spellings vary in case and wording)."""

    CLEAN = "clean"
    SUSPICIOUS = "suspicious"
    DANGEROUS = "dangerous"
    ERROR = "error"

    @classmethod
    def from_store(cls, value: str | None) -> "ScanStatus":
        """Convert a store/scorer status string to the enum."""
        if isinstance(value, cls):
            return value
        key = (value or "").strip().lower().replace("_", " ")
        mapping = {
            "clean": cls.CLEAN,
            "review": cls.SUSPICIOUS,
            "suspicious": cls.SUSPICIOUS,
            "high risk": cls.DANGEROUS,
            "dangerous": cls.DANGEROUS,
        }
        return mapping.get(key, cls.ERROR)

    @property
    def store_label(self) -> str:
        """Spelling used by the hosted ``domains`` table."""
        return {
            ScanStatus.CLEAN: "Clean",
            ScanStatus.SUSPICIOUS: "Review",
            ScanStatus.DANGEROUS: "High Risk",
            ScanStatus.ERROR: "Error",
        }[self]

    def __str__(self) -> str:
        return self.value


def score_label(score: float) -> str:
    """Human label for a 0-10 spam score."""
    if score >= 7:
        return "High Risk"
    if score >= 4:
        return "Medium Risk"
    return "Low Risk"
