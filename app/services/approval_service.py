"""
Approval state machine for time entries.

    draft -> submitted -> approved -> locked
    submitted -> draft              (reject)
    approved | locked -> draft      (reopen)

Every operation selects candidate rows with a status predicate and moves them
with a conditional UPDATE that repeats the predicate, so a row already moved
by a concurrent caller is excluded rather than overwritten. The row changes
and the audit entry are staged in one session and commit together.

Functions follow the time engine convention: if ``db`` is provided the
caller owns the transaction; otherwise the function opens, commits and
closes its own session.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import EmptySelection, MissingReason, NoMatchingEntries
from app.database import SessionLocal
from app.models.expense import Expense, ExpenseStatus
from app.models.time_entry import TimeEntry, TimeEntryStatus
from app.services import audit_service
from app.services.audit_service import (
    ENTITY_TIME_ENTRY,
    ApproveMetadata,
    LockMetadata,
    RejectMetadata,
    ReopenMetadata,
    SubmitMetadata,
)
from app.services.week_helpers import DateLike, get_week_bounds, get_week_id, to_date

logger = logging.getLogger(__name__)

DRAFT = TimeEntryStatus.DRAFT.value
SUBMITTED = TimeEntryStatus.SUBMITTED.value
APPROVED = TimeEntryStatus.APPROVED.value
LOCKED = TimeEntryStatus.LOCKED.value


@dataclass
class TransitionResult:
    entry_count: int
    total_hours: float = 0.0
    entry_ids: list[str] = field(default_factory=list)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _submitted_values(actor_id: str) -> dict:
    now = _utc_now()
    return {
        TimeEntry.approval_status: SUBMITTED,
        TimeEntry.submitted_at: now,
        TimeEntry.submitted_by: str(actor_id),
        TimeEntry.first_submitted_at: func.coalesce(TimeEntry.first_submitted_at, now),
    }


def _require_reason(reason: Optional[str], operation: str) -> str:
    if reason is None or not str(reason).strip():
        raise MissingReason(operation)
    return str(reason).strip()


def _select_candidates(
    db: Session,
    company_id: int,
    user_id: str,
    start: date,
    end: date,
    statuses: Sequence[str],
) -> list[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.user_id == str(user_id),
            TimeEntry.date >= start,
            TimeEntry.date <= end,
            TimeEntry.approval_status.in_(list(statuses)),
        )
        .order_by(TimeEntry.date.asc(), TimeEntry.id.asc())
        .with_for_update()
        .all()
    )


def _move(
    db: Session,
    company_id: int,
    entries: Sequence[TimeEntry],
    statuses: Sequence[str],
    values: dict,
) -> int:
    if not entries:
        return 0
    return (
        db.query(TimeEntry)
        .filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.id.in_([e.id for e in entries]),
            TimeEntry.approval_status.in_(list(statuses)),
        )
        .update(values, synchronize_session=False)
    )


def _total_hours(entries: Iterable[TimeEntry]) -> float:
    return float(sum(e.hours or 0 for e in entries))


def _run(db: Optional[Session], operation):
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        result = operation(db)
        if owns_db:
            db.commit()
        return result
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def _log_transition(action: str, company_id: int, actor_id: str, entity_id: str, moved: int) -> None:
    logger.info(
        "Time entry transition applied",
        extra={
            "action": action,
            "company_id": company_id,
            "actor_id": actor_id,
            "entity_id": entity_id,
            "entry_count": moved,
        },
    )


def submit_time_entries(
    company_id: int,
    actor_id: str,
    entry_ids: Sequence[str],
    *,
    db: Optional[Session] = None,
) -> TransitionResult:
    """
    Move the caller's own draft entries in ``entry_ids`` to submitted.

    Ids that are not drafts or belong to someone else are skipped silently.
    One audit entry is written per week touched.
    """
    ids = [str(i) for i in entry_ids or []]
    if not ids:
        raise EmptySelection("ids")

    def operation(db: Session) -> TransitionResult:
        candidates = (
            db.query(TimeEntry)
            .filter(
                TimeEntry.company_id == int(company_id),
                TimeEntry.user_id == str(actor_id),
                TimeEntry.id.in_(ids),
                TimeEntry.approval_status == DRAFT,
            )
            .order_by(TimeEntry.date.asc(), TimeEntry.id.asc())
            .with_for_update()
            .all()
        )
        if not candidates:
            return TransitionResult(entry_count=0)

        moved = _move(
            db,
            company_id,
            candidates,
            [DRAFT],
            _submitted_values(actor_id),
        )

        by_week: "OrderedDict[str, list[TimeEntry]]" = OrderedDict()
        for entry in candidates:
            by_week.setdefault(get_week_id(entry.date), []).append(entry)

        for week_id, week_entries in by_week.items():
            audit_service.write_audit_entry(
                db,
                company_id=company_id,
                entity_type=ENTITY_TIME_ENTRY,
                entity_id=audit_service.week_entity_id(actor_id, week_id),
                action="SUBMIT",
                from_status=DRAFT,
                to_status=SUBMITTED,
                actor_id=actor_id,
                metadata=SubmitMetadata(
                    user_id=str(actor_id),
                    week_start=week_id,
                    entry_count=len(week_entries),
                    total_hours=_total_hours(week_entries),
                    entry_ids=[e.id for e in week_entries],
                ),
            )

        _log_transition("SUBMIT", company_id, actor_id, f"user:{actor_id}", moved)
        return TransitionResult(
            entry_count=moved,
            total_hours=_total_hours(candidates),
            entry_ids=[e.id for e in candidates],
        )

    return _run(db, operation)


def submit_week(
    company_id: int,
    actor_id: str,
    week_of: DateLike,
    *,
    db: Optional[Session] = None,
) -> TransitionResult:
    """Submit every draft entry the caller owns in the week containing ``week_of``."""
    bounds = get_week_bounds(week_of)
    week_id = bounds.week_start.isoformat()
    entity_id = audit_service.week_entity_id(actor_id, week_id)

    def operation(db: Session) -> TransitionResult:
        entries = _select_candidates(db, company_id, actor_id, bounds.week_start, bounds.week_end, [DRAFT])
        moved = _move(
            db,
            company_id,
            entries,
            [DRAFT],
            _submitted_values(actor_id),
        )
        if moved == 0:
            raise NoMatchingEntries("No draft entries to submit for this week")

        total_hours = _total_hours(entries)
        audit_service.write_audit_entry(
            db,
            company_id=company_id,
            entity_type=ENTITY_TIME_ENTRY,
            entity_id=entity_id,
            action="SUBMIT",
            from_status=DRAFT,
            to_status=SUBMITTED,
            actor_id=actor_id,
            metadata=SubmitMetadata(
                user_id=str(actor_id),
                week_start=week_id,
                entry_count=moved,
                total_hours=total_hours,
                entry_ids=[e.id for e in entries],
            ),
        )

        _log_transition("SUBMIT", company_id, actor_id, entity_id, moved)
        return TransitionResult(entry_count=moved, total_hours=total_hours, entry_ids=[e.id for e in entries])

    return _run(db, operation)


def approve_day(
    company_id: int,
    actor_id: str,
    user_id: str,
    day: DateLike,
    *,
    db: Optional[Session] = None,
) -> TransitionResult:
    target_day = to_date(day)
    day_key = target_day.isoformat()
    entity_id = audit_service.day_entity_id(user_id, day_key)

    def operation(db: Session) -> TransitionResult:
        entries = _select_candidates(db, company_id, user_id, target_day, target_day, [SUBMITTED])
        moved = _move(
            db,
            company_id,
            entries,
            [SUBMITTED],
            {
                TimeEntry.approval_status: APPROVED,
                TimeEntry.approved_at: _utc_now(),
                TimeEntry.approved_by: str(actor_id),
                TimeEntry.rejected_at: None,
                TimeEntry.rejected_by: None,
            },
        )
        if moved == 0:
            raise NoMatchingEntries("No submitted entries found for this day")

        total_hours = _total_hours(entries)
        audit_service.write_audit_entry(
            db,
            company_id=company_id,
            entity_type=ENTITY_TIME_ENTRY,
            entity_id=entity_id,
            action="APPROVE",
            from_status=SUBMITTED,
            to_status=APPROVED,
            actor_id=actor_id,
            metadata=ApproveMetadata(
                user_id=str(user_id),
                date=day_key,
                entry_count=moved,
                total_hours=total_hours,
                entry_ids=[e.id for e in entries],
            ),
        )

        _log_transition("APPROVE", company_id, actor_id, entity_id, moved)
        return TransitionResult(entry_count=moved, total_hours=total_hours, entry_ids=[e.id for e in entries])

    return _run(db, operation)


def reject_day(
    company_id: int,
    actor_id: str,
    user_id: str,
    day: DateLike,
    reason: Optional[str],
    *,
    db: Optional[Session] = None,
) -> TransitionResult:
    reason = _require_reason(reason, "reject entries")
    target_day = to_date(day)
    day_key = target_day.isoformat()
    entity_id = audit_service.day_entity_id(user_id, day_key)

    def operation(db: Session) -> TransitionResult:
        entries = _select_candidates(db, company_id, user_id, target_day, target_day, [SUBMITTED])
        moved = _move(
            db,
            company_id,
            entries,
            [SUBMITTED],
            {
                TimeEntry.approval_status: DRAFT,
                TimeEntry.rejected_at: _utc_now(),
                TimeEntry.rejected_by: str(actor_id),
                TimeEntry.submitted_at: None,
                TimeEntry.submitted_by: None,
            },
        )
        if moved == 0:
            raise NoMatchingEntries("No submitted entries found for this day")

        audit_service.write_audit_entry(
            db,
            company_id=company_id,
            entity_type=ENTITY_TIME_ENTRY,
            entity_id=entity_id,
            action="REJECT",
            from_status=SUBMITTED,
            to_status=DRAFT,
            actor_id=actor_id,
            metadata=RejectMetadata(
                user_id=str(user_id),
                date=day_key,
                reason=reason,
                entry_count=moved,
                entry_ids=[e.id for e in entries],
            ),
        )

        _log_transition("REJECT", company_id, actor_id, entity_id, moved)
        return TransitionResult(entry_count=moved, total_hours=_total_hours(entries), entry_ids=[e.id for e in entries])

    return _run(db, operation)


def lock_week(
    company_id: int,
    actor_id: str,
    user_id: str,
    week_of: DateLike,
    *,
    db: Optional[Session] = None,
) -> TransitionResult:
    bounds = get_week_bounds(week_of)
    week_id = bounds.week_start.isoformat()
    entity_id = audit_service.week_entity_id(user_id, week_id)

    def operation(db: Session) -> TransitionResult:
        entries = _select_candidates(db, company_id, user_id, bounds.week_start, bounds.week_end, [APPROVED])
        moved = _move(
            db,
            company_id,
            entries,
            [APPROVED],
            {
                TimeEntry.approval_status: LOCKED,
                TimeEntry.locked_at: _utc_now(),
                TimeEntry.locked_by: str(actor_id),
            },
        )
        if moved == 0:
            raise NoMatchingEntries("No approved entries found for this week")

        audit_service.write_audit_entry(
            db,
            company_id=company_id,
            entity_type=ENTITY_TIME_ENTRY,
            entity_id=entity_id,
            action="LOCK",
            from_status=APPROVED,
            to_status=LOCKED,
            actor_id=actor_id,
            metadata=LockMetadata(
                user_id=str(user_id),
                week_start=week_id,
                entry_count=moved,
                entry_ids=[e.id for e in entries],
            ),
        )

        _log_transition("LOCK", company_id, actor_id, entity_id, moved)
        return TransitionResult(entry_count=moved, total_hours=_total_hours(entries), entry_ids=[e.id for e in entries])

    return _run(db, operation)


def reopen_week(
    company_id: int,
    actor_id: str,
    user_id: str,
    week_of: DateLike,
    reason: Optional[str],
    *,
    db: Optional[Session] = None,
) -> TransitionResult:
    reason = _require_reason(reason, "reopen entries")
    bounds = get_week_bounds(week_of)
    week_id = bounds.week_start.isoformat()
    entity_id = audit_service.week_entity_id(user_id, week_id)

    def operation(db: Session) -> TransitionResult:
        entries = _select_candidates(
            db, company_id, user_id, bounds.week_start, bounds.week_end, [APPROVED, LOCKED]
        )
        if not entries:
            raise NoMatchingEntries("No approved or locked entries found for this week")

        # A week is expected to be homogeneous; the first row's status is what gets recorded.
        previous_status = entries[0].approval_status

        moved = _move(
            db,
            company_id,
            entries,
            [APPROVED, LOCKED],
            {
                TimeEntry.approval_status: DRAFT,
                TimeEntry.submitted_at: None,
                TimeEntry.submitted_by: None,
                TimeEntry.approved_at: None,
                TimeEntry.approved_by: None,
                TimeEntry.locked_at: None,
                TimeEntry.locked_by: None,
            },
        )
        if moved == 0:
            raise NoMatchingEntries("No approved or locked entries found for this week")

        audit_service.write_audit_entry(
            db,
            company_id=company_id,
            entity_type=ENTITY_TIME_ENTRY,
            entity_id=entity_id,
            action="REOPEN",
            from_status=previous_status,
            to_status=DRAFT,
            actor_id=actor_id,
            metadata=ReopenMetadata(
                user_id=str(user_id),
                week_start=week_id,
                reason=reason,
                previous_status=previous_status,
                entry_count=moved,
                entry_ids=[e.id for e in entries],
            ),
        )

        _log_transition("REOPEN", company_id, actor_id, entity_id, moved)
        return TransitionResult(entry_count=moved, total_hours=_total_hours(entries), entry_ids=[e.id for e in entries])

    return _run(db, operation)


def list_week_submissions(db: Session, company_id: int, status: Optional[str] = SUBMITTED) -> list[dict]:
    """Group the tenant's time entries by user and week for the approval queue."""
    q = db.query(TimeEntry).filter(TimeEntry.company_id == int(company_id))
    if status is not None and status != "all":
        q = q.filter(TimeEntry.approval_status == str(status))

    entries = q.order_by(TimeEntry.date.asc(), TimeEntry.id.asc()).all()

    groups: "OrderedDict[tuple[str, str], dict]" = OrderedDict()
    for entry in entries:
        week_id = get_week_id(entry.date)
        key = (entry.user_id, week_id)
        group = groups.get(key)
        if group is None:
            group = {
                "user_id": entry.user_id,
                "week_start": week_id,
                "total_hours": 0.0,
                "billable_hours": 0.0,
                "entry_count": 0,
                "submitted_at": entry.submitted_at,
                "approval_status": entry.approval_status,
                "entries": [],
            }
            groups[key] = group

        group["total_hours"] += float(entry.hours or 0)
        if entry.billing_status == "billable":
            group["billable_hours"] += float(entry.hours or 0)
        group["entry_count"] += 1
        if entry.submitted_at is not None and (
            group["submitted_at"] is None or entry.submitted_at < group["submitted_at"]
        ):
            group["submitted_at"] = entry.submitted_at
        group["entries"].append(entry)

    def sort_key(group: dict):
        submitted_at = group["submitted_at"]
        # Groups without a submission time sort after those with one.
        return (
            submitted_at is None,
            submitted_at.isoformat() if submitted_at is not None else "",
            group["week_start"],
        )

    return sorted(groups.values(), key=sort_key)


def pending_counts(db: Session, company_id: int) -> dict[str, int]:
    time_entries = (
        db.query(TimeEntry)
        .filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.approval_status == SUBMITTED,
        )
        .count()
    )
    expenses = (
        db.query(Expense)
        .filter(
            Expense.company_id == int(company_id),
            Expense.approval_status == ExpenseStatus.SUBMITTED.value,
        )
        .count()
    )
    return {
        "time_entries": time_entries,
        "expenses": expenses,
        "approvals": time_entries + expenses,
    }
