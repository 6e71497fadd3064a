from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from app.core.errors import EntityNotFound
from app.models.company_expense import CompanyExpense
from app.services.currency import REFERENCE_CURRENCY, convert_and_round, convert_currency, smart_round
from app.services.expense_utils import expand_recurring_expenses


def create_company_expense(
    db: Session,
    company_id: int,
    created_by: str,
    *,
    amount: Decimal,
    description: str,
    category: str,
    expense_date: date,
    currency: str = REFERENCE_CURRENCY,
    recurring: bool = False,
    frequency: Optional[str] = None,
) -> CompanyExpense:
    if amount <= 0:
        raise ValueError("Amount must be greater than 0")

    expense = CompanyExpense(
        id=str(uuid4()),
        company_id=int(company_id),
        amount=amount,
        currency=currency,
        description=description,
        category=category,
        date=expense_date,
        recurring=bool(recurring),
        frequency=frequency if recurring else None,
        is_deleted=False,
        created_by=str(created_by),
    )
    db.add(expense)
    db.flush()
    db.refresh(expense)
    return expense


def list_company_expenses(db: Session, company_id: int, category: Optional[str] = None) -> list[CompanyExpense]:
    q = db.query(CompanyExpense).filter(
        CompanyExpense.company_id == int(company_id),
        CompanyExpense.is_deleted.is_(False),
    )
    if category is not None:
        q = q.filter(CompanyExpense.category == str(category))
    return q.order_by(CompanyExpense.date.desc(), CompanyExpense.id.asc()).all()


def delete_company_expense(db: Session, company_id: int, expense_id: str) -> None:
    expense = (
        db.query(CompanyExpense)
        .filter(
            CompanyExpense.company_id == int(company_id),
            CompanyExpense.id == str(expense_id),
            CompanyExpense.is_deleted.is_(False),
        )
        .one_or_none()
    )
    if expense is None:
        raise EntityNotFound("CompanyExpense", expense_id)
    expense.is_deleted = True
    db.flush()


def overhead_report(
    db: Session,
    company_id: int,
    start: date,
    end: date,
    currency: str = REFERENCE_CURRENCY,
) -> dict:
    """
    Expand the tenant's overhead expenses over [start, end] and total them in ``currency``.

    ``total`` is the exact converted sum; ``budget_total`` is the same figure
    passed through smart rounding for budget displays.
    """
    expenses = list_company_expenses(db, company_id)
    currency_by_id = {e.id: e.currency for e in expenses}

    occurrences = []
    for expense in expenses:
        for occurrence in expand_recurring_expenses([expense], start, end):
            occurrences.append((expense.id, occurrence))

    by_category: "OrderedDict[str, float]" = OrderedDict()
    total = 0.0
    rows = []
    for expense_id, occurrence in sorted(occurrences, key=lambda item: (item[1].date, item[0])):
        source_currency = currency_by_id[expense_id]
        converted = convert_currency(float(occurrence.amount), source_currency, currency)
        total += converted
        by_category[occurrence.category] = by_category.get(occurrence.category, 0.0) + converted
        rows.append(
            {
                "company_expense_id": expense_id,
                "date": occurrence.date,
                "category": occurrence.category,
                "description": occurrence.description,
                "amount": float(occurrence.amount),
                "currency": source_currency,
                "converted_amount": converted,
                "budget_amount": convert_and_round(float(occurrence.amount), source_currency, currency),
            }
        )

    return {
        "start": start,
        "end": end,
        "currency": currency,
        "occurrences": rows,
        "by_category": dict(by_category),
        "total": total,
        "budget_total": smart_round(total),
    }
