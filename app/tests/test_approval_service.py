from datetime import date

import pytest

from app.core.errors import EmptySelection, InvalidTransition, MissingReason, NoMatchingEntries
from app.database import SessionLocal
from app.models.audit_log import AuditLog
from app.models.time_entry import TimeEntry
from app.services import approval_service, time_entry_service
from app.services.audit_service import parse_audit_metadata

MONDAY = date(2024, 1, 8)
WEDNESDAY = date(2024, 1, 10)
SUNDAY = date(2024, 1, 14)


def _load(entry_id: str) -> TimeEntry:
    db = SessionLocal()
    try:
        return db.query(TimeEntry).filter(TimeEntry.id == entry_id).one()
    finally:
        db.close()


def _audit_rows(company_id: int) -> list[AuditLog]:
    db = SessionLocal()
    try:
        return (
            db.query(AuditLog)
            .filter(AuditLog.company_id == company_id)
            .order_by(AuditLog.id.asc())
            .all()
        )
    finally:
        db.close()


def test_submit_skips_entries_owned_by_someone_else(company_id, time_entry_factory):
    mine = time_entry_factory(company_id, "emp-1", MONDAY, hours=4)
    theirs = time_entry_factory(company_id, "emp-2", MONDAY, hours=3)

    result = approval_service.submit_time_entries(company_id, "emp-1", [mine.id, theirs.id])

    assert result.entry_count == 1
    assert _load(mine.id).approval_status == "submitted"
    assert _load(mine.id).submitted_by == "emp-1"
    assert _load(theirs.id).approval_status == "draft"


def test_submit_ignores_non_draft_entries(company_id, time_entry_factory):
    approved = time_entry_factory(company_id, "emp-1", MONDAY, approval_status="approved")

    result = approval_service.submit_time_entries(company_id, "emp-1", [approved.id])

    assert result.entry_count == 0
    assert _load(approved.id).approval_status == "approved"
    assert _audit_rows(company_id) == []


def test_submit_with_empty_selection_is_a_validation_error(company_id):
    with pytest.raises(EmptySelection):
        approval_service.submit_time_entries(company_id, "emp-1", [])


def test_submit_writes_one_audit_entry_per_week(company_id, time_entry_factory):
    a = time_entry_factory(company_id, "emp-1", WEDNESDAY)
    b = time_entry_factory(company_id, "emp-1", date(2024, 1, 16))

    result = approval_service.submit_time_entries(company_id, "emp-1", [a.id, b.id])

    assert result.entry_count == 2
    rows = _audit_rows(company_id)
    assert [r.entity_id for r in rows] == ["user:emp-1|week:2024-01-08", "user:emp-1|week:2024-01-15"]
    assert all(r.action == "SUBMIT" and r.from_status == "draft" and r.to_status == "submitted" for r in rows)


def test_submit_week_moves_whole_week_including_sunday(company_id, time_entry_factory):
    mon = time_entry_factory(company_id, "emp-1", MONDAY, hours=8)
    sun = time_entry_factory(company_id, "emp-1", SUNDAY, hours=2)
    next_week = time_entry_factory(company_id, "emp-1", date(2024, 1, 15), hours=5)

    result = approval_service.submit_week(company_id, "emp-1", SUNDAY)

    assert result.entry_count == 2
    assert result.total_hours == 10
    assert _load(mon.id).approval_status == "submitted"
    assert _load(sun.id).approval_status == "submitted"
    assert _load(next_week.id).approval_status == "draft"


def test_submit_week_without_drafts_reports_no_match(company_id):
    with pytest.raises(NoMatchingEntries):
        approval_service.submit_week(company_id, "emp-1", MONDAY)


def test_approve_day_moves_submitted_entries_and_audits(company_id, time_entry_factory):
    e1 = time_entry_factory(company_id, "emp-1", WEDNESDAY, hours=3, approval_status="submitted")
    e2 = time_entry_factory(company_id, "emp-1", WEDNESDAY, hours=4.5, approval_status="submitted")
    other_day = time_entry_factory(company_id, "emp-1", MONDAY, approval_status="submitted")

    result = approval_service.approve_day(company_id, "admin-1", "emp-1", "2024-01-10")

    assert result.entry_count == 2
    assert result.total_hours == 7.5
    assert _load(e1.id).approval_status == "approved"
    assert _load(e1.id).approved_by == "admin-1"
    assert _load(e2.id).approval_status == "approved"
    assert _load(other_day.id).approval_status == "submitted"

    [row] = _audit_rows(company_id)
    assert row.entity_type == "TimeEntry"
    assert row.entity_id == "user:emp-1|day:2024-01-10"
    assert row.action == "APPROVE"
    assert row.actor_id == "admin-1"
    metadata = parse_audit_metadata(row.metadata_)
    assert metadata.entry_count == 2
    assert metadata.total_hours == 7.5
    assert sorted(metadata.entry_ids) == sorted([e1.id, e2.id])


def test_approve_day_with_nothing_submitted_reports_no_match(company_id, time_entry_factory):
    time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="draft")

    with pytest.raises(NoMatchingEntries) as exc_info:
        approval_service.approve_day(company_id, "admin-1", "emp-1", WEDNESDAY)

    assert str(exc_info.value) == "No submitted entries found for this day"
    assert _audit_rows(company_id) == []


def test_approve_day_never_crosses_tenants(company_id, time_entry_factory):
    other_company = company_id + 500_000
    foreign = time_entry_factory(other_company, "emp-1", WEDNESDAY, approval_status="submitted")

    with pytest.raises(NoMatchingEntries):
        approval_service.approve_day(company_id, "admin-1", "emp-1", WEDNESDAY)

    assert _load(foreign.id).approval_status == "submitted"


def test_reject_day_requires_reason_before_touching_rows(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="submitted")

    for reason in (None, "", "   "):
        with pytest.raises(MissingReason):
            approval_service.reject_day(company_id, "admin-1", "emp-1", WEDNESDAY, reason)

    assert _load(entry.id).approval_status == "submitted"
    assert _audit_rows(company_id) == []


def test_reject_day_returns_entries_to_draft(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="submitted")

    result = approval_service.reject_day(company_id, "admin-1", "emp-1", WEDNESDAY, "Missing project")

    assert result.entry_count == 1
    reloaded = _load(entry.id)
    assert reloaded.approval_status == "draft"
    assert reloaded.rejected_by == "admin-1"
    assert reloaded.rejected_at is not None
    assert reloaded.submitted_at is None

    [row] = _audit_rows(company_id)
    assert row.action == "REJECT"
    assert row.metadata_["reason"] == "Missing project"


def test_lock_week_locks_only_approved_entries(company_id, time_entry_factory):
    approved = time_entry_factory(company_id, "emp-1", MONDAY, approval_status="approved")
    submitted = time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="submitted")

    result = approval_service.lock_week(company_id, "admin-1", "emp-1", WEDNESDAY)

    assert result.entry_count == 1
    assert _load(approved.id).approval_status == "locked"
    assert _load(approved.id).locked_by == "admin-1"
    assert _load(submitted.id).approval_status == "submitted"

    [row] = _audit_rows(company_id)
    assert row.entity_id == "user:emp-1|week:2024-01-08"
    assert row.from_status == "approved"
    assert row.to_status == "locked"


def test_lock_week_without_approved_entries_reports_no_match(company_id, time_entry_factory):
    time_entry_factory(company_id, "emp-1", MONDAY, approval_status="submitted")

    with pytest.raises(NoMatchingEntries):
        approval_service.lock_week(company_id, "admin-1", "emp-1", MONDAY)


def test_reopen_locked_week_clears_stamps_and_records_previous_status(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="submitted")
    approval_service.approve_day(company_id, "admin-1", "emp-1", WEDNESDAY)
    approval_service.lock_week(company_id, "admin-1", "emp-1", WEDNESDAY)

    result = approval_service.reopen_week(company_id, "admin-1", "emp-1", MONDAY, "Wrong project code")

    assert result.entry_count == 1
    reloaded = _load(entry.id)
    assert reloaded.approval_status == "draft"
    assert reloaded.submitted_at is None
    assert reloaded.approved_at is None
    assert reloaded.approved_by is None
    assert reloaded.locked_at is None
    assert reloaded.locked_by is None

    reopen = _audit_rows(company_id)[-1]
    assert reopen.action == "REOPEN"
    assert reopen.from_status == "locked"
    assert reopen.to_status == "draft"
    metadata = parse_audit_metadata(reopen.metadata_)
    assert metadata.previous_status == "locked"
    assert metadata.reason == "Wrong project code"


def test_reopen_requires_reason(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="locked")

    with pytest.raises(MissingReason):
        approval_service.reopen_week(company_id, "admin-1", "emp-1", WEDNESDAY, None)

    assert _load(entry.id).approval_status == "locked"


def test_reopen_without_approved_or_locked_entries_reports_no_match(company_id, time_entry_factory):
    time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="draft")

    with pytest.raises(NoMatchingEntries):
        approval_service.reopen_week(company_id, "admin-1", "emp-1", WEDNESDAY, "reason")


def test_second_approval_of_same_day_reports_no_match(company_id, time_entry_factory):
    time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="submitted")

    approval_service.approve_day(company_id, "admin-1", "emp-1", WEDNESDAY)
    with pytest.raises(NoMatchingEntries):
        approval_service.approve_day(company_id, "admin-2", "emp-1", WEDNESDAY)

    assert len(_audit_rows(company_id)) == 1


def test_caller_owned_session_is_not_committed(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="submitted")

    db = SessionLocal()
    try:
        approval_service.approve_day(company_id, "admin-1", "emp-1", WEDNESDAY, db=db)
        db.rollback()
    finally:
        db.close()

    assert _load(entry.id).approval_status == "submitted"
    assert _audit_rows(company_id) == []


def test_week_submissions_grouped_by_user_and_week(company_id, time_entry_factory):
    time_entry_factory(company_id, "emp-1", MONDAY, hours=8)
    time_entry_factory(company_id, "emp-1", WEDNESDAY, hours=2, billing_status="internal")
    time_entry_factory(company_id, "emp-2", WEDNESDAY, hours=6)
    approval_service.submit_week(company_id, "emp-1", MONDAY)
    approval_service.submit_week(company_id, "emp-2", MONDAY)

    db = SessionLocal()
    try:
        groups = approval_service.list_week_submissions(db, company_id)
        counts = approval_service.pending_counts(db, company_id)
    finally:
        db.close()

    by_user = {g["user_id"]: g for g in groups}
    assert set(by_user) == {"emp-1", "emp-2"}
    assert by_user["emp-1"]["week_start"] == "2024-01-08"
    assert by_user["emp-1"]["total_hours"] == 10
    assert by_user["emp-1"]["billable_hours"] == 8
    assert by_user["emp-1"]["entry_count"] == 2
    assert by_user["emp-2"]["entry_count"] == 1
    assert counts == {"time_entries": 3, "expenses": 0, "approvals": 3}


def test_approving_a_resubmitted_day_clears_the_earlier_rejection(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="submitted")
    approval_service.reject_day(company_id, "admin-1", "emp-1", WEDNESDAY, "Missing project")
    assert _load(entry.id).rejected_by == "admin-1"

    approval_service.submit_time_entries(company_id, "emp-1", [entry.id])
    approval_service.approve_day(company_id, "admin-2", "emp-1", WEDNESDAY)

    reloaded = _load(entry.id)
    assert reloaded.approval_status == "approved"
    assert reloaded.approved_by == "admin-2"
    assert reloaded.rejected_at is None
    assert reloaded.rejected_by is None


def test_first_submission_time_survives_reject_and_reopen(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY)
    assert entry.first_submitted_at is None

    approval_service.submit_time_entries(company_id, "emp-1", [entry.id])
    first = _load(entry.id).first_submitted_at
    assert first is not None

    approval_service.reject_day(company_id, "admin-1", "emp-1", WEDNESDAY, "Missing project")
    approval_service.submit_week(company_id, "emp-1", WEDNESDAY)
    approval_service.approve_day(company_id, "admin-1", "emp-1", WEDNESDAY)
    approval_service.lock_week(company_id, "admin-1", "emp-1", WEDNESDAY)
    approval_service.reopen_week(company_id, "admin-1", "emp-1", WEDNESDAY, "Wrong project code")

    reloaded = _load(entry.id)
    assert reloaded.approval_status == "draft"
    assert reloaded.submitted_at is None
    assert reloaded.first_submitted_at == first


def test_reopened_entry_cannot_be_deleted(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY)
    approval_service.submit_time_entries(company_id, "emp-1", [entry.id])
    approval_service.approve_day(company_id, "admin-1", "emp-1", WEDNESDAY)
    approval_service.lock_week(company_id, "admin-1", "emp-1", WEDNESDAY)
    approval_service.reopen_week(company_id, "admin-1", "emp-1", WEDNESDAY, "Wrong project code")

    db = SessionLocal()
    try:
        with pytest.raises(InvalidTransition):
            time_entry_service.delete_time_entry(db, company_id, "emp-1", entry.id)
        db.rollback()
    finally:
        db.close()

    assert _load(entry.id).approval_status == "draft"


def test_never_submitted_draft_can_still_be_deleted(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY)

    db = SessionLocal()
    try:
        time_entry_service.delete_time_entry(db, company_id, "emp-1", entry.id)
        db.commit()
    finally:
        db.close()

    db = SessionLocal()
    try:
        assert db.query(TimeEntry).filter(TimeEntry.id == entry.id).one_or_none() is None
    finally:
        db.close()


def test_concurrent_reject_wins_and_late_approval_moves_nothing(company_id, time_entry_factory):
    entry = time_entry_factory(company_id, "emp-1", WEDNESDAY, approval_status="submitted")

    approver = SessionLocal()
    rejecter = SessionLocal()
    try:
        # The approver has read the submitted rows but not yet written.
        candidates = (
            approver.query(TimeEntry)
            .filter(TimeEntry.company_id == company_id, TimeEntry.approval_status == "submitted")
            .all()
        )
        assert [c.id for c in candidates] == [entry.id]

        approval_service.reject_day(company_id, "admin-2", "emp-1", WEDNESDAY, "Wrong day", db=rejecter)
        rejecter.commit()

        moved = approval_service._move(
            approver,
            company_id,
            candidates,
            ["submitted"],
            {TimeEntry.approval_status: "approved", TimeEntry.approved_by: "admin-1"},
        )
        assert moved == 0

        with pytest.raises(NoMatchingEntries):
            approval_service.approve_day(company_id, "admin-1", "emp-1", WEDNESDAY, db=approver)
    finally:
        approver.rollback()
        rejecter.rollback()
        approver.close()
        rejecter.close()

    reloaded = _load(entry.id)
    assert reloaded.approval_status == "draft"
    assert reloaded.rejected_by == "admin-2"
    assert reloaded.approved_by is None

    actions = [row.action for row in _audit_rows(company_id)]
    assert actions == ["REJECT"]
