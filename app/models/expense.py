from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Index, Integer, Numeric, String, Text, func

from app.database import Base


class ExpenseStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String, primary_key=True, index=True)

    company_id = Column(Integer, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    project_id = Column(String, nullable=True, index=True)

    date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="DKK")
    description = Column(Text, nullable=False)
    category = Column(String, nullable=True)
    receipt_url = Column(String, nullable=True)

    approval_status = Column(String, nullable=False, default=ExpenseStatus.DRAFT.value, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_by = Column(String, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String, nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    is_finalized = Column(Boolean, nullable=False, default=False)
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    external_sync_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        CheckConstraint(
            "approval_status IN ('draft', 'submitted', 'approved', 'rejected')",
            name="ck_expenses_approval_status",
        ),
        Index("ix_expenses_company_status", "company_id", "approval_status"),
    )
