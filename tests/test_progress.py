"""Tests for batch progress aggregation."""

from __future__ import annotations

import pytest

from urlsentry.errors import FetchError, ValidationError
from urlsentry.models import DomainRecord
from urlsentry.scanner.progress import ScanSession, SessionState, apply_update, compute_percent
from urlsentry.store.base import ChangeEvent


def _records(*pairs: tuple[str, str]) -> list[DomainRecord]:
    return [DomainRecord(id=record_id, domain=domain) for record_id, domain in pairs]


def _update(record_id: str, checks, *, event_type: str = "UPDATE") -> ChangeEvent:
    return ChangeEvent(
        type=event_type,
        table="domains",
        record={"id": record_id, "number_of_checks": checks},
    )


def test_start_tracks_every_record_at_zero():
    session = ScanSession.start(_records(("r1", "a.com"), ("r2", "b.com")))
    assert session.total_domains == 2
    assert session.domain_progress == {"r1": 0, "r2": 0}
    assert session.completed_domains == 0
    assert session.overall_percent == 0.0
    assert session.state == SessionState.SUBMITTING


def test_start_rejects_empty_batch():
    with pytest.raises(ValidationError):
        ScanSession.start([])


def test_two_domain_check_in_sequence():
    session = ScanSession.start(_records(("r1", "a.com"), ("r2", "b.com")))
    sequence = [("r1", 1), ("r2", 1), ("r1", 2), ("r2", 2), ("r1", 3), ("r2", 3)]

    percents = []
    completed = []
    for record_id, checks in sequence:
        update = apply_update(session, _update(record_id, checks))
        assert not update.ignored
        percents.append(round(update.percent, 1))
        completed.append(update.completed_domains)

    assert percents == [16.7, 33.3, 50.0, 66.7, 83.3, 100.0]
    assert completed == [0, 0, 0, 0, 1, 2]
    assert session.state == SessionState.COMPLETE
    assert session.is_complete


def test_first_domain_finishes_before_second_starts():
    session = ScanSession.start(_records(("r1", "a.com"), ("r2", "b.com")))
    sequence = [("r1", 1), ("r1", 2), ("r1", 3), ("r2", 1), ("r2", 2), ("r2", 3)]

    steps = []
    for record_id, checks in sequence:
        update = apply_update(session, _update(record_id, checks))
        steps.append((round(update.percent, 1), update.completed_domains))

    assert steps == [(16.7, 0), (33.3, 0), (50.0, 1), (66.7, 1), (83.3, 1), (100.0, 2)]
    assert session.state == SessionState.COMPLETE


def test_completion_is_signalled_once():
    session = ScanSession.start(_records(("r1", "a.com")))
    first = apply_update(session, _update("r1", 3))
    assert first.completed_now is True
    assert session.completed_domains == 1

    again = apply_update(session, _update("r1", 3))
    assert again.ignored is True
    assert session.completed_domains == 1


def test_duplicate_completion_before_batch_done_counts_once():
    session = ScanSession.start(_records(("r1", "a.com"), ("r2", "b.com")))
    apply_update(session, _update("r1", 3))
    update = apply_update(session, _update("r1", 3))
    assert not update.ignored
    assert update.completed_domains == 1
    assert session.completed_domains == 1
    assert not session.is_complete


def test_events_outside_session_are_ignored():
    session = ScanSession.start(_records(("r1", "a.com")))
    update = apply_update(session, _update("someone-else", 3))
    assert update.ignored
    assert session.domain_progress == {"r1": 0}
    assert session.completed_domains == 0


def test_non_update_events_are_ignored():
    session = ScanSession.start(_records(("r1", "a.com")))
    assert apply_update(session, _update("r1", 3, event_type="INSERT")).ignored
    assert apply_update(session, _update("r1", 3, event_type="DELETE")).ignored
    assert session.completed_domains == 0


def test_malformed_check_count_is_ignored():
    session = ScanSession.start(_records(("r1", "a.com")))
    assert apply_update(session, _update("r1", "lots")).ignored
    assert session.domain_progress["r1"] == 0


def test_duplicate_domains_tracked_by_record_id():
    session = ScanSession.start(_records(("r1", "a.com"), ("r2", "a.com")))
    assert session.total_domains == 2

    apply_update(session, _update("r1", 3))
    assert session.completed_domains == 1
    assert not session.is_complete

    update = apply_update(session, _update("r2", 3))
    assert update.completed_now
    assert session.is_complete


def test_progress_clamped_to_threshold():
    session = ScanSession.start(_records(("r1", "a.com"), ("r2", "b.com")))
    apply_update(session, _update("r1", 7))
    assert session.domain_progress["r1"] == 3
    assert session.overall_percent == pytest.approx(50.0)
    assert compute_percent(session) <= 100.0


def test_last_write_wins_for_progress():
    session = ScanSession.start(_records(("r1", "a.com")))
    apply_update(session, _update("r1", 2))
    apply_update(session, _update("r1", 1))
    assert session.domain_progress["r1"] == 1
    assert session.overall_percent == pytest.approx(100 / 3)


def test_failed_session_ignores_updates():
    session = ScanSession.start(_records(("r1", "a.com")))
    session.fail(FetchError("boom"))
    assert session.state == SessionState.FAILED
    assert apply_update(session, _update("r1", 3)).ignored
    assert session.completed_domains == 0


def test_complete_session_can_still_fail():
    session = ScanSession.start(_records(("r1", "a.com")))
    apply_update(session, _update("r1", 3))
    session.fail(FetchError("read failed"))
    assert session.state == SessionState.FAILED
    assert session.error.kind == "fetch"


def test_begin_submission_only_from_idle():
    session = ScanSession()
    session.begin_submission()
    assert session.state == SessionState.SUBMITTING
    with pytest.raises(RuntimeError):
        session.begin_submission()


def test_to_dict_rounds_percent():
    session = ScanSession.start(_records(("r1", "a.com"), ("r2", "b.com")))
    apply_update(session, _update("r1", 1))
    assert session.to_dict() == {"state": "aggregating", "percent": 16.7, "completed": 0, "total": 2}
