import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.expense_utils import PROJECT_EXPENSE_CATEGORIES


def _check_category(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in PROJECT_EXPENSE_CATEGORIES:
        raise ValueError(f"category must be one of {', '.join(PROJECT_EXPENSE_CATEGORIES)}")
    return value


class ExpenseCreate(BaseModel):
    date: dt.date
    amount: Decimal = Field(gt=0)
    currency: str = Field(default="DKK", min_length=3, max_length=3)
    description: str = Field(min_length=1, max_length=500)
    category: Optional[str] = None
    project_id: Optional[str] = None
    receipt_url: Optional[str] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, value: Optional[str]) -> Optional[str]:
        return _check_category(value)


class ExpenseUpdate(BaseModel):
    date: Optional[dt.date] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    category: Optional[str] = None
    project_id: Optional[str] = None
    receipt_url: Optional[str] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, value: Optional[str]) -> Optional[str]:
        return _check_category(value)


class ExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: int
    user_id: str
    project_id: Optional[str]
    date: dt.date
    amount: float
    currency: str
    description: str
    category: Optional[str]
    receipt_url: Optional[str]
    approval_status: str
    submitted_at: Optional[dt.datetime]
    submitted_by: Optional[str]
    approved_at: Optional[dt.datetime]
    approved_by: Optional[str]
    rejected_at: Optional[dt.datetime]
    rejected_by: Optional[str]
    rejection_reason: Optional[str]
    is_finalized: bool
    finalized_at: Optional[dt.datetime]


class ExpenseIdsRequest(BaseModel):
    expense_ids: list[str]


class ExpenseRejectRequest(ExpenseIdsRequest):
    reason: Optional[str] = Field(default=None, max_length=1000)


class UserExpenses(BaseModel):
    user_id: str
    expenses: list[ExpenseResponse]
