from fastapi import APIRouter, Depends

from app.core.authorization import Capability, require_capability
from app.core.errors import ApprovalError, to_http_exception
from app.core.rate_limit import rate_limited
from app.database import SessionLocal
from app.deps.auth import AuthContext
from app.schemas.expense import ExpenseIdsRequest, ExpenseRejectRequest, UserExpenses
from app.schemas.time_entry import CountResponse
from app.services import expense_service

router = APIRouter(prefix="/admin/expense_approvals", tags=["Expense Approvals"])


@router.get("", response_model=list[UserExpenses])
def list_submitted_expenses(
    auth: AuthContext = Depends(require_capability(Capability.APPROVE_EXPENSES)),
):
    db = SessionLocal()
    try:
        return expense_service.submitted_by_user(db, auth.company_id)
    finally:
        db.close()


@router.post(
    "/approve",
    response_model=CountResponse,
    dependencies=[Depends(rate_limited("approvals"))],
)
def approve_expenses(
    payload: ExpenseIdsRequest,
    auth: AuthContext = Depends(require_capability(Capability.APPROVE_EXPENSES)),
):
    db = SessionLocal()
    try:
        count = expense_service.approve_expenses(auth.company_id, auth.user_id, payload.expense_ids, db=db)
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


@router.post(
    "/reject",
    response_model=CountResponse,
    dependencies=[Depends(rate_limited("approvals"))],
)
def reject_expenses(
    payload: ExpenseRejectRequest,
    auth: AuthContext = Depends(require_capability(Capability.APPROVE_EXPENSES)),
):
    db = SessionLocal()
    try:
        count = expense_service.reject_expenses(
            auth.company_id, auth.user_id, payload.expense_ids, payload.reason, db=db
        )
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
