"""
Expense lifecycle: draft -> submitted -> approved | rejected.

Approval finalizes the row; finalized rows are never touched again by the
approval flows. Unlike time entries, every expense transition is audited
per row.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy.orm import Session

from app.core.errors import EmptySelection, EntityNotFound, InvalidTransition
from app.database import SessionLocal
from app.models.audit_log import AuditLog
from app.models.expense import Expense, ExpenseStatus
from app.services import audit_service
from app.services.audit_service import ENTITY_EXPENSE, ApproveMetadata, RejectMetadata, SubmitMetadata

logger = logging.getLogger(__name__)

DRAFT = ExpenseStatus.DRAFT.value
SUBMITTED = ExpenseStatus.SUBMITTED.value
APPROVED = ExpenseStatus.APPROVED.value
REJECTED = ExpenseStatus.REJECTED.value

EDITABLE_STATUSES = (DRAFT, REJECTED)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_ids(expense_ids: Sequence[str]) -> list[str]:
    ids = [str(i) for i in expense_ids or []]
    if not ids:
        raise EmptySelection("expense_ids")
    return ids


def _get_expense(db: Session, company_id: int, expense_id: str) -> Expense:
    expense = (
        db.query(Expense)
        .filter(Expense.company_id == int(company_id), Expense.id == str(expense_id))
        .one_or_none()
    )
    if expense is None:
        raise EntityNotFound("Expense", expense_id)
    return expense


def create_expense(
    db: Session,
    company_id: int,
    user_id: str,
    expense_date: date,
    amount: Decimal,
    description: str,
    *,
    currency: str = "DKK",
    category: Optional[str] = None,
    project_id: Optional[str] = None,
    receipt_url: Optional[str] = None,
) -> Expense:
    if amount <= 0:
        raise ValueError("amount must be greater than 0")

    expense = Expense(
        id=str(uuid4()),
        company_id=int(company_id),
        user_id=str(user_id),
        project_id=project_id,
        date=expense_date,
        amount=amount,
        currency=currency,
        description=description,
        category=category,
        receipt_url=receipt_url,
        approval_status=DRAFT,
        is_finalized=False,
    )
    db.add(expense)
    db.flush()
    db.refresh(expense)
    return expense


def update_expense(db: Session, company_id: int, user_id: str, expense_id: str, changes: dict) -> Expense:
    expense = _get_expense(db, company_id, expense_id)
    if expense.user_id != str(user_id):
        raise EntityNotFound("Expense", expense_id)
    if expense.is_finalized or expense.approval_status not in EDITABLE_STATUSES:
        raise InvalidTransition("Can only update draft or rejected expenses")

    if changes.get("amount") is not None and changes["amount"] <= 0:
        raise ValueError("amount must be greater than 0")

    for field in ("date", "amount", "currency", "description", "category", "project_id", "receipt_url"):
        if field in changes:
            setattr(expense, field, changes[field])

    db.flush()
    db.refresh(expense)
    return expense


def delete_expense(db: Session, company_id: int, user_id: str, expense_id: str) -> None:
    expense = _get_expense(db, company_id, expense_id)
    if expense.user_id != str(user_id):
        raise EntityNotFound("Expense", expense_id)
    if expense.approval_status != DRAFT:
        raise InvalidTransition("Can only delete draft expenses")
    db.delete(expense)
    db.flush()


def list_expenses(
    db: Session,
    company_id: int,
    *,
    user_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[Expense]:
    q = db.query(Expense).filter(Expense.company_id == int(company_id))
    if user_id is not None:
        q = q.filter(Expense.user_id == str(user_id))
    if status is not None:
        q = q.filter(Expense.approval_status == str(status))
    return q.order_by(Expense.date.desc(), Expense.id.asc()).all()


def _transition(
    db: Optional[Session],
    *,
    company_id: int,
    actor_id: str,
    expense_ids: Sequence[str],
    action: str,
    from_status: str,
    to_status: str,
    values: dict,
    extra_filters: Sequence = (),
    metadata_for=None,
) -> int:
    ids = _normalize_ids(expense_ids)

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        filters = [
            Expense.company_id == int(company_id),
            Expense.id.in_(ids),
            Expense.approval_status == from_status,
            *extra_filters,
        ]
        candidates = (
            db.query(Expense)
            .filter(*filters)
            .order_by(Expense.id.asc())
            .with_for_update()
            .all()
        )

        moved = 0
        if candidates:
            moved = (
                db.query(Expense)
                .filter(*filters, Expense.id.in_([e.id for e in candidates]))
                .update(values, synchronize_session=False)
            )

            for expense in candidates:
                audit_service.write_audit_entry(
                    db,
                    company_id=company_id,
                    entity_type=ENTITY_EXPENSE,
                    entity_id=expense.id,
                    action=action,
                    from_status=from_status,
                    to_status=to_status,
                    actor_id=actor_id,
                    metadata=None if metadata_for is None else metadata_for(expense),
                )

        if owns_db:
            db.commit()

        logger.info(
            "Expense transition applied",
            extra={
                "action": action,
                "company_id": company_id,
                "actor_id": actor_id,
                "requested": len(ids),
                "entry_count": moved,
            },
        )
        return moved
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def submit_expenses(
    company_id: int,
    actor_id: str,
    expense_ids: Sequence[str],
    *,
    db: Optional[Session] = None,
) -> int:
    """Owner submits their own drafts. Rows owned by others or not in draft are skipped."""
    return _transition(
        db,
        company_id=company_id,
        actor_id=actor_id,
        expense_ids=expense_ids,
        action="SUBMIT",
        from_status=DRAFT,
        to_status=SUBMITTED,
        values={
            Expense.approval_status: SUBMITTED,
            Expense.submitted_at: _utc_now(),
            Expense.submitted_by: str(actor_id),
        },
        extra_filters=[Expense.user_id == str(actor_id)],
        metadata_for=lambda e: SubmitMetadata(user_id=e.user_id, entry_count=1, entry_ids=[e.id]),
    )


def approve_expenses(
    company_id: int,
    actor_id: str,
    expense_ids: Sequence[str],
    *,
    db: Optional[Session] = None,
) -> int:
    now = _utc_now()
    return _transition(
        db,
        company_id=company_id,
        actor_id=actor_id,
        expense_ids=expense_ids,
        action="APPROVE",
        from_status=SUBMITTED,
        to_status=APPROVED,
        values={
            Expense.approval_status: APPROVED,
            Expense.approved_at: now,
            Expense.approved_by: str(actor_id),
            Expense.is_finalized: True,
            Expense.finalized_at: now,
        },
        extra_filters=[Expense.is_finalized.is_(False)],
        metadata_for=lambda e: ApproveMetadata(user_id=e.user_id, entry_count=1, entry_ids=[e.id]),
    )


def reject_expenses(
    company_id: int,
    actor_id: str,
    expense_ids: Sequence[str],
    reason: Optional[str] = None,
    *,
    db: Optional[Session] = None,
) -> int:
    reason = reason.strip() if reason and reason.strip() else None
    return _transition(
        db,
        company_id=company_id,
        actor_id=actor_id,
        expense_ids=expense_ids,
        action="REJECT",
        from_status=SUBMITTED,
        to_status=REJECTED,
        values={
            Expense.approval_status: REJECTED,
            Expense.rejected_at: _utc_now(),
            Expense.rejected_by: str(actor_id),
            Expense.rejection_reason: reason,
        },
        extra_filters=[Expense.is_finalized.is_(False)],
        metadata_for=lambda e: RejectMetadata(user_id=e.user_id, reason=reason, entry_count=1, entry_ids=[e.id]),
    )


def submitted_by_user(db: Session, company_id: int) -> list[dict]:
    expenses = (
        db.query(Expense)
        .filter(
            Expense.company_id == int(company_id),
            Expense.approval_status == SUBMITTED,
        )
        .order_by(Expense.date.desc(), Expense.id.asc())
        .all()
    )

    grouped: "OrderedDict[str, dict]" = OrderedDict()
    for expense in expenses:
        grouped.setdefault(expense.user_id, {"user_id": expense.user_id, "expenses": []})
        grouped[expense.user_id]["expenses"].append(expense)
    return list(grouped.values())


def expense_history(db: Session, company_id: int, expense_id: str) -> list[AuditLog]:
    _get_expense(db, company_id, expense_id)
    return (
        db.query(AuditLog)
        .filter(
            AuditLog.company_id == int(company_id),
            AuditLog.entity_type == ENTITY_EXPENSE,
            AuditLog.entity_id == str(expense_id),
        )
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .all()
    )
