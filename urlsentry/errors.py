"""Scan error taxonomy.

Every failure is scoped to one scan session; nothing here is fatal to the
process. ``kind`` is the stable machine-readable name surfaced by the
dashboard API.
"""

from __future__ import annotations


class ScanError(Exception):
    """Base exception for scan failures."""

    kind = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ScanError):
    """Input rejected before any external call was made."""

    kind = "validation"


class SubmissionError(ScanError):
    """Record creation or scorer trigger failed."""

    kind = "submission"

    def __init__(self, message: str, *, domain: str | None = None, status_code: int | None = None):
        self.domain = domain
        self.status_code = status_code
        super().__init__(message)


class FetchError(ScanError):
    """Final read returned no rows for the session."""

    kind = "fetch"


class SubscriptionError(ScanError):
    """Change-notification channel failed to establish or dropped."""

    kind = "subscription"


class ScanTimeoutError(ScanError):
    """Scorer did not finish within the configured wait."""

    kind = "timed_out"

    def __init__(self, message: str, *, timeout: float):
        self.timeout = timeout
        super().__init__(message)
