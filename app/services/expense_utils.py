from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, List, Optional

from app.services.week_helpers import DateLike, to_date

COMPANY_EXPENSE_CATEGORIES = (
    "rent",
    "insurance",
    "utilities",
    "software",
    "salaries",
    "other",
)

PROJECT_EXPENSE_CATEGORIES = (
    "travel",
    "materials",
    "software",
    "meals",
    "other",
)

_FREQUENCY_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "yearly": 12,
}


@dataclass
class ExpenseTemplate:
    amount: float
    date: DateLike
    category: str
    description: str
    recurring: bool = False
    frequency: Optional[str] = None


@dataclass(frozen=True)
class MaterializedExpense:
    amount: float
    date: date
    category: str
    description: str


def _add_months(day: date, months: int) -> date:
    # Only called with first-of-month dates, so the day never overflows.
    index = day.month - 1 + months
    return day.replace(year=day.year + index // 12, month=index % 12 + 1)


def expand_recurring_expenses(
    expenses: Iterable[Any],
    start: DateLike,
    end: DateLike,
) -> List[MaterializedExpense]:
    """
    Materialize expense templates into dated occurrences within [start, end], inclusive.

    Accepts anything with amount/date/category/description/recurring/frequency
    attributes (ExpenseTemplate or CompanyExpense rows). Recurring templates
    are walked from the first day of the month holding their date, one step
    of their frequency at a time; unknown frequencies step monthly.
    """
    start_day = to_date(start)
    end_day = to_date(end)
    result: List[MaterializedExpense] = []

    for expense in expenses:
        expense_day = to_date(expense.date)

        if not expense.recurring:
            if start_day <= expense_day <= end_day:
                result.append(
                    MaterializedExpense(
                        amount=expense.amount,
                        date=expense_day,
                        category=expense.category,
                        description=expense.description,
                    )
                )
            continue

        step = _FREQUENCY_MONTHS.get(expense.frequency or "monthly", 1)
        current = expense_day.replace(day=1)

        while current <= end_day:
            if current >= start_day:
                result.append(
                    MaterializedExpense(
                        amount=expense.amount,
                        date=current,
                        category=expense.category,
                        description=expense.description,
                    )
                )
            current = _add_months(current, step)

    return result


def should_auto_approve(amount: float, threshold: Optional[float]) -> bool:
    if threshold is None:
        return False
    return amount <= threshold
