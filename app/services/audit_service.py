"""
Audit log writer.

One row per logical transition. Batch transitions on time entries produce a
single row keyed by a composite id (``user:<id>|day:<date>`` or
``user:<id>|week:<weekStart>``) with the affected ids in metadata; expense
transitions produce one row per expense.
"""
from __future__ import annotations

import logging
from typing import Annotated, Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter
from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

ENTITY_TIME_ENTRY = "TimeEntry"
ENTITY_EXPENSE = "Expense"


class SubmitMetadata(BaseModel):
    action: Literal["SUBMIT"] = "SUBMIT"
    user_id: str
    week_start: Optional[str] = None
    entry_count: int
    total_hours: Optional[float] = None
    entry_ids: List[str] = Field(default_factory=list)


class ApproveMetadata(BaseModel):
    action: Literal["APPROVE"] = "APPROVE"
    user_id: str
    date: Optional[str] = None
    entry_count: int
    total_hours: Optional[float] = None
    entry_ids: List[str] = Field(default_factory=list)


class RejectMetadata(BaseModel):
    action: Literal["REJECT"] = "REJECT"
    user_id: str
    date: Optional[str] = None
    reason: Optional[str] = None
    entry_count: int
    entry_ids: List[str] = Field(default_factory=list)


class LockMetadata(BaseModel):
    action: Literal["LOCK"] = "LOCK"
    user_id: str
    week_start: str
    entry_count: int
    entry_ids: List[str] = Field(default_factory=list)


class ReopenMetadata(BaseModel):
    action: Literal["REOPEN"] = "REOPEN"
    user_id: str
    week_start: str
    reason: str
    previous_status: str
    entry_count: int
    entry_ids: List[str] = Field(default_factory=list)


AuditMetadata = Annotated[
    Union[SubmitMetadata, ApproveMetadata, RejectMetadata, LockMetadata, ReopenMetadata],
    Field(discriminator="action"),
]

_metadata_adapter = TypeAdapter(AuditMetadata)


def parse_audit_metadata(raw: Optional[dict[str, Any]]):
    if raw is None:
        return None
    return _metadata_adapter.validate_python(raw)


def day_entity_id(user_id: str, day: str) -> str:
    return f"user:{user_id}|day:{day}"


def week_entity_id(user_id: str, week_id: str) -> str:
    return f"user:{user_id}|week:{week_id}"


def write_audit_entry(
    db: Session,
    *,
    company_id: int,
    entity_type: str,
    entity_id: str,
    action: str,
    from_status: Optional[str],
    to_status: Optional[str],
    actor_id: str,
    metadata: Optional[BaseModel] = None,
) -> AuditLog:
    """
    Stage an audit row in the caller's session. Caller owns the transaction,
    so the row commits or rolls back together with the transition it records.
    """
    if metadata is not None and getattr(metadata, "action", action) != action:
        raise ValueError(f"Metadata for {metadata.action} cannot describe {action}")

    row = AuditLog(
        company_id=int(company_id),
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        from_status=from_status,
        to_status=to_status,
        actor_id=str(actor_id),
        metadata_=None if metadata is None else metadata.model_dump(mode="json"),
    )
    db.add(row)
    db.flush()

    logger.info(
        "Audit entry written",
        extra={
            "company_id": company_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "from_status": from_status,
            "to_status": to_status,
            "actor_id": actor_id,
        },
    )
    return row


def list_audit_entries(
    db: Session,
    company_id: int,
    *,
    entity_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    action: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[list[AuditLog], int]:
    q = db.query(AuditLog).filter(AuditLog.company_id == int(company_id))

    if entity_id is not None:
        q = q.filter(AuditLog.entity_id == str(entity_id))
    if actor_id is not None:
        q = q.filter(AuditLog.actor_id == str(actor_id))
    if action is not None:
        q = q.filter(AuditLog.action == str(action))

    total = q.count()
    rows = (
        q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((int(page) - 1) * int(limit))
        .limit(int(limit))
        .all()
    )
    return rows, total
