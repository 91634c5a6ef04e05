"""Batch progress aggregation over scorer check-in events.

A ``ScanSession`` is the whole state of one in-flight scan. ``apply_update``
is the only transition on incoming row updates; it is transport-agnostic so
it can be driven by a realtime channel, the local change feed or a test.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..constants import COMPLETION_THRESHOLD
from ..errors import ScanError, ValidationError
from ..models import DomainRecord
from ..store.base import ChangeEvent

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    AGGREGATING = "aggregating"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressUpdate:
    """Outcome of applying one event to a session."""

    record_id: str
    percent: float
    completed_domains: int
    total_domains: int
    completed_now: bool = False
    ignored: bool = False


@dataclass
class ScanSession:
    """Ephemeral tracker for one batch of submitted domains.

    All tracking is keyed by store-assigned record id, so the same domain
    string submitted twice is two independent entries.
    """

    domains_by_id: dict[str, str] = field(default_factory=dict)
    domain_progress: dict[str, int] = field(default_factory=dict)
    counted_ids: set[str] = field(default_factory=set)
    completed_domains: int = 0
    state: SessionState = SessionState.IDLE
    overall_percent: float = 0.0
    error: Optional[ScanError] = None
    threshold: int = COMPLETION_THRESHOLD

    @property
    def total_domains(self) -> int:
        return len(self.domains_by_id)

    @property
    def record_ids(self) -> list[str]:
        return list(self.domains_by_id)

    @property
    def is_complete(self) -> bool:
        return self.state == SessionState.COMPLETE

    @property
    def is_finished(self) -> bool:
        return self.state in (SessionState.COMPLETE, SessionState.FAILED)

    def begin_submission(self) -> None:
        if self.state != SessionState.IDLE:
            raise RuntimeError(f"Cannot submit from state {self.state.value}")
        self.state = SessionState.SUBMITTING

    def track(self, records: list[DomainRecord]) -> None:
        """Register submitted records; the session now waits for updates."""
        if not records:
            raise ValidationError("No domains to scan")
        if self.state not in (SessionState.IDLE, SessionState.SUBMITTING):
            raise RuntimeError(f"Cannot track records in state {self.state.value}")
        for record in records:
            self.domains_by_id[str(record.id)] = record.domain
            self.domain_progress[str(record.id)] = 0
        self.state = SessionState.SUBMITTING

    @classmethod
    def start(cls, records: list[DomainRecord], *, threshold: int = COMPLETION_THRESHOLD) -> "ScanSession":
        session = cls(threshold=threshold)
        session.track(records)
        return session

    def fail(self, error: ScanError) -> None:
        """Abandon the session; a complete session can still fail in the final read."""
        if self.state == SessionState.FAILED:
            return
        self.state = SessionState.FAILED
        self.error = error

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "percent": round(self.overall_percent, 1),
            "completed": self.completed_domains,
            "total": self.total_domains,
        }


def compute_percent(session: ScanSession) -> float:
    total = session.total_domains
    if total == 0:
        return 0.0
    return 100.0 * sum(session.domain_progress.values()) / (total * session.threshold)


def apply_update(session: ScanSession, event: ChangeEvent) -> ProgressUpdate:
    """Fold one row-update event into the session.

    Events for records outside the session, or arriving after the session
    finished, are reported as ignored and leave the session untouched.
    """
    record_id = event.record_id
    ignored = ProgressUpdate(
        record_id=record_id,
        percent=session.overall_percent,
        completed_domains=session.completed_domains,
        total_domains=session.total_domains,
        ignored=True,
    )
    if session.is_finished or record_id not in session.domains_by_id:
        return ignored
    if event.type.upper() != "UPDATE":
        return ignored

    try:
        checks = int(event.record.get("number_of_checks") or 0)
    except (TypeError, ValueError):
        logger.warning("Ignoring update for %s with malformed number_of_checks", record_id)
        return ignored

    session.state = SessionState.AGGREGATING
    session.domain_progress[record_id] = max(0, min(checks, session.threshold))
    session.overall_percent = compute_percent(session)

    completed_now = False
    if checks >= session.threshold and record_id not in session.counted_ids:
        session.counted_ids.add(record_id)
        session.completed_domains += 1
        if session.completed_domains == session.total_domains:
            session.state = SessionState.COMPLETE
            completed_now = True

    return ProgressUpdate(
        record_id=record_id,
        percent=session.overall_percent,
        completed_domains=session.completed_domains,
        total_domains=session.total_domains,
        completed_now=completed_now,
    )
