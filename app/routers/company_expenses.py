from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.authorization import Capability, require_capability
from app.core.errors import ApprovalError, to_http_exception
from app.core.rate_limit import rate_limited
from app.database import SessionLocal
from app.deps.auth import AuthContext
from app.schemas.company_expense import CompanyExpenseCreate, CompanyExpenseResponse, OverheadReport
from app.services import company_expense_service
from app.services.currency import format_currency

router = APIRouter(prefix="/admin/company_expenses", tags=["Company Expenses"])


@router.get("", response_model=list[CompanyExpenseResponse])
def list_company_expenses(
    category: Optional[str] = None,
    auth: AuthContext = Depends(require_capability(Capability.MANAGE_COMPANY_EXPENSES)),
):
    db = SessionLocal()
    try:
        return company_expense_service.list_company_expenses(db, auth.company_id, category=category)
    finally:
        db.close()


@router.post(
    "",
    response_model=CompanyExpenseResponse,
    status_code=201,
    dependencies=[Depends(rate_limited("company_expenses:write"))],
)
def create_company_expense(
    payload: CompanyExpenseCreate,
    auth: AuthContext = Depends(require_capability(Capability.MANAGE_COMPANY_EXPENSES)),
):
    db = SessionLocal()
    try:
        expense = company_expense_service.create_company_expense(
            db,
            auth.company_id,
            auth.user_id,
            amount=payload.amount,
            description=payload.description,
            category=payload.category,
            expense_date=payload.date,
            currency=payload.currency.upper(),
            recurring=payload.recurring,
            frequency=payload.frequency,
        )
        db.commit()
        return expense
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.delete(
    "/{expense_id}",
    status_code=204,
    dependencies=[Depends(rate_limited("company_expenses:write"))],
)
def delete_company_expense(
    expense_id: str,
    auth: AuthContext = Depends(require_capability(Capability.MANAGE_COMPANY_EXPENSES)),
):
    db = SessionLocal()
    try:
        company_expense_service.delete_company_expense(db, auth.company_id, expense_id)
        db.commit()
    except ApprovalError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/overhead", response_model=OverheadReport)
def get_overhead_report(
    start: date,
    end: date,
    currency: str = Query(default="DKK", min_length=3, max_length=3),
    auth: AuthContext = Depends(require_capability(Capability.MANAGE_COMPANY_EXPENSES)),
):
    if end < start:
        raise HTTPException(status_code=422, detail="end must not be before start")

    currency = currency.upper()
    db = SessionLocal()
    try:
        report = company_expense_service.overhead_report(db, auth.company_id, start, end, currency)
    finally:
        db.close()

    report["formatted_total"] = format_currency(report["total"], currency)
    report["formatted_budget"] = format_currency(report["budget_total"], currency, decimals=0)
    return report
