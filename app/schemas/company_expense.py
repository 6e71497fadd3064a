import datetime as dt
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.services.expense_utils import COMPANY_EXPENSE_CATEGORIES

Frequency = Literal["monthly", "quarterly", "yearly"]


class CompanyExpenseCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    currency: str = Field(default="DKK", min_length=3, max_length=3)
    description: str = Field(min_length=1, max_length=500)
    category: str = Field(min_length=1, max_length=100)
    date: dt.date
    recurring: bool = False
    frequency: Optional[Frequency] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, value: str) -> str:
        if value not in COMPANY_EXPENSE_CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(COMPANY_EXPENSE_CATEGORIES)}")
        return value

    @model_validator(mode="after")
    def recurring_needs_frequency(self):
        if self.recurring and self.frequency is None:
            raise ValueError("frequency is required for recurring expenses")
        return self


class CompanyExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: int
    amount: float
    currency: str
    description: str
    category: str
    date: dt.date
    recurring: bool
    frequency: Optional[str]
    created_by: str
    created_at: dt.datetime


class OverheadOccurrence(BaseModel):
    company_expense_id: str
    date: dt.date
    category: str
    description: str
    amount: float
    currency: str
    converted_amount: float
    budget_amount: float


class OverheadReport(BaseModel):
    start: dt.date
    end: dt.date
    currency: str
    occurrences: list[OverheadOccurrence]
    by_category: dict[str, float]
    total: float
    budget_total: int
    formatted_total: str
    formatted_budget: str
