from enum import Enum

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Float, Index, Integer, String, Text, func

from app.database import Base


class TimeEntryStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    LOCKED = "locked"


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(String, primary_key=True, index=True)

    company_id = Column(Integer, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    project_id = Column(String, nullable=True, index=True)

    date = Column(Date, nullable=False)
    hours = Column(Float, nullable=False)
    comment = Column(Text, nullable=True)
    billing_status = Column(String, nullable=False, default="billable")

    approval_status = Column(String, nullable=False, default=TimeEntryStatus.DRAFT.value, index=True)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_by = Column(String, nullable=True)
    # Set by the first submit and never cleared; reopened drafts keep it.
    first_submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String, nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String, nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    locked_by = Column(String, nullable=True)

    external_sync_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("hours >= 0", name="ck_time_entries_hours_nonnegative"),
        CheckConstraint(
            "approval_status IN ('draft', 'submitted', 'approved', 'locked')",
            name="ck_time_entries_approval_status",
        ),
        Index("ix_time_entries_company_user_date", "company_id", "user_id", "date"),
    )
