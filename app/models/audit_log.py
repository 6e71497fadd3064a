from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, func

from app.database import Base


class AuditLog(Base):
    """Append-only record of one state transition. UPDATE/DELETE are blocked by triggers."""

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)

    company_id = Column(Integer, nullable=False, index=True)

    entity_type = Column(String, nullable=False)  # TimeEntry|Expense
    entity_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False, index=True)
    from_status = Column(String, nullable=True)
    to_status = Column(String, nullable=True)
    actor_id = Column(String, nullable=False, index=True)

    metadata_ = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_audit_log_company_created", "company_id", "created_at"),
    )
