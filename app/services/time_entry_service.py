from datetime import date
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from app.core.errors import EntityNotFound, InvalidTransition
from app.models.time_entry import TimeEntry, TimeEntryStatus


def _get_own_entry(db: Session, company_id: int, user_id: str, entry_id: str) -> TimeEntry:
    entry = (
        db.query(TimeEntry)
        .filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.user_id == str(user_id),
            TimeEntry.id == str(entry_id),
        )
        .one_or_none()
    )
    if entry is None:
        raise EntityNotFound("TimeEntry", entry_id)
    return entry


def _require_draft(entry: TimeEntry, verb: str) -> None:
    if entry.approval_status != TimeEntryStatus.DRAFT.value:
        raise InvalidTransition(f"Can only {verb} draft entries (entry is {entry.approval_status})")


def create_time_entry(
    db: Session,
    company_id: int,
    user_id: str,
    entry_date: date,
    hours: float,
    *,
    project_id: Optional[str] = None,
    comment: Optional[str] = None,
    billing_status: str = "billable",
) -> TimeEntry:
    if hours < 0:
        raise ValueError("hours must be non-negative")

    entry = TimeEntry(
        id=str(uuid4()),
        company_id=int(company_id),
        user_id=str(user_id),
        project_id=project_id,
        date=entry_date,
        hours=float(hours),
        comment=comment,
        billing_status=billing_status,
        approval_status=TimeEntryStatus.DRAFT.value,
    )
    db.add(entry)
    db.flush()
    db.refresh(entry)
    return entry


def update_time_entry(
    db: Session,
    company_id: int,
    user_id: str,
    entry_id: str,
    changes: dict,
) -> TimeEntry:
    entry = _get_own_entry(db, company_id, user_id, entry_id)
    _require_draft(entry, "edit")

    if changes.get("hours") is not None and changes["hours"] < 0:
        raise ValueError("hours must be non-negative")

    for field in ("date", "hours", "project_id", "comment", "billing_status"):
        if field in changes:
            setattr(entry, field, changes[field])

    db.flush()
    db.refresh(entry)
    return entry


def delete_time_entry(db: Session, company_id: int, user_id: str, entry_id: str) -> None:
    entry = _get_own_entry(db, company_id, user_id, entry_id)
    _require_draft(entry, "delete")
    # Anything ever submitted stays for the audit trail, even once reopened.
    if entry.first_submitted_at is not None:
        raise InvalidTransition("Entries that have been submitted cannot be deleted")
    db.delete(entry)
    db.flush()


def list_time_entries(
    db: Session,
    company_id: int,
    *,
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[TimeEntry]:
    q = db.query(TimeEntry).filter(TimeEntry.company_id == int(company_id))

    if user_id is not None:
        q = q.filter(TimeEntry.user_id == str(user_id))
    if status is not None:
        q = q.filter(TimeEntry.approval_status == str(status))
    if date_from is not None:
        q = q.filter(TimeEntry.date >= date_from)
    if date_to is not None:
        q = q.filter(TimeEntry.date <= date_to)

    return (
        q.order_by(TimeEntry.date.desc(), TimeEntry.id.asc())
        .offset(int(offset))
        .limit(int(limit))
        .all()
    )
