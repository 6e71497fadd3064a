from typing import Optional

from fastapi import APIRouter, Depends

from app.core.authorization import Capability, require_capability
from app.core.errors import ApprovalError, to_http_exception
from app.core.rate_limit import rate_limited
from app.database import SessionLocal
from app.deps.auth import AuthContext, require_auth
from app.schemas.audit import AuditLogResponse
from app.schemas.expense import ExpenseCreate, ExpenseIdsRequest, ExpenseResponse, ExpenseUpdate
from app.schemas.time_entry import CountResponse
from app.services import expense_service
from app.services.currency import SUPPORTED_CURRENCIES
from app.services.expense_utils import COMPANY_EXPENSE_CATEGORIES, PROJECT_EXPENSE_CATEGORIES

router = APIRouter(prefix="/expenses", tags=["Expenses"])


@router.get("/options")
def expense_options(_auth: AuthContext = Depends(require_auth)):
    return {
        "project_categories": list(PROJECT_EXPENSE_CATEGORIES),
        "company_categories": list(COMPANY_EXPENSE_CATEGORIES),
        "currencies": list(SUPPORTED_CURRENCIES),
    }


@router.get("", response_model=list[ExpenseResponse])
def list_own_expenses(
    status: Optional[str] = None,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        return expense_service.list_expenses(db, auth.company_id, user_id=auth.user_id, status=status)
    finally:
        db.close()


@router.post(
    "",
    response_model=ExpenseResponse,
    status_code=201,
    dependencies=[Depends(rate_limited("expenses:write"))],
)
def create_expense(
    payload: ExpenseCreate,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        expense = expense_service.create_expense(
            db,
            auth.company_id,
            auth.user_id,
            payload.date,
            payload.amount,
            payload.description,
            currency=payload.currency.upper(),
            category=payload.category,
            project_id=payload.project_id,
            receipt_url=payload.receipt_url,
        )
        db.commit()
        return expense
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.patch(
    "/{expense_id}",
    response_model=ExpenseResponse,
    dependencies=[Depends(rate_limited("expenses:write"))],
)
def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("currency"):
        changes["currency"] = changes["currency"].upper()

    db = SessionLocal()
    try:
        expense = expense_service.update_expense(db, auth.company_id, auth.user_id, expense_id, changes)
        db.commit()
        return expense
    except ApprovalError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.delete(
    "/{expense_id}",
    status_code=204,
    dependencies=[Depends(rate_limited("expenses:write"))],
)
def delete_expense(
    expense_id: str,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        expense_service.delete_expense(db, auth.company_id, auth.user_id, expense_id)
        db.commit()
    except ApprovalError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post(
    "/submit",
    response_model=CountResponse,
    dependencies=[Depends(rate_limited("expenses:submit"))],
)
def submit_expenses(
    payload: ExpenseIdsRequest,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        count = expense_service.submit_expenses(auth.company_id, auth.user_id, payload.expense_ids, db=db)
        db.commit()
        return {"count": count}
    except ApprovalError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/{expense_id}/history", response_model=list[AuditLogResponse])
def get_expense_history(
    expense_id: str,
    auth: AuthContext = Depends(require_auth),
):
    db = SessionLocal()
    try:
        return expense_service.expense_history(db, auth.company_id, expense_id)
    except ApprovalError as exc:
        raise to_http_exception(exc) from exc
    finally:
        db.close()
