from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Integer, Numeric, String, Text, func

from app.database import Base


class CompanyExpense(Base):
    __tablename__ = "company_expenses"

    id = Column(String, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="DKK")
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False)
    date = Column(Date, nullable=False)

    recurring = Column(Boolean, nullable=False, default=False)
    frequency = Column(String, nullable=True)  # monthly|quarterly|yearly

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_company_expenses_amount_positive"),
    )
