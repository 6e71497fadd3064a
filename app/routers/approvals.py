from typing import Optional

from fastapi import APIRouter, Depends

from app.core.authorization import Capability, require_capability
from app.core.errors import ApprovalError, to_http_exception
from app.core.rate_limit import rate_limited
from app.database import SessionLocal
from app.deps.auth import AuthContext
from app.schemas.approval import (
    DayApprovalRequest,
    DayRejectionRequest,
    PendingCountsResponse,
    WeekLockRequest,
    WeekReopenRequest,
    WeekSubmissionsResponse,
)
from app.schemas.time_entry import TransitionResponse
from app.services import approval_service

router = APIRouter(prefix="/admin/approvals", tags=["Approvals"])


def _run_transition(operation):
    db = SessionLocal()
    try:
        result = operation(db)
        db.commit()
        return {"success": True, "entry_count": result.entry_count, "total_hours": result.total_hours}
    except ApprovalError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("", response_model=WeekSubmissionsResponse)
def list_week_submissions(
    status: Optional[str] = "submitted",
    auth: AuthContext = Depends(require_capability(Capability.APPROVE_TIME)),
):
    db = SessionLocal()
    try:
        groups = approval_service.list_week_submissions(db, auth.company_id, status=status)
        return {"week_submissions": groups}
    finally:
        db.close()


@router.get("/pending_counts", response_model=PendingCountsResponse)
def get_pending_counts(
    auth: AuthContext = Depends(require_capability(Capability.VIEW_PENDING_COUNTS)),
):
    db = SessionLocal()
    try:
        return {"counts": approval_service.pending_counts(db, auth.company_id)}
    finally:
        db.close()


@router.post(
    "/approve_day",
    response_model=TransitionResponse,
    dependencies=[Depends(rate_limited("approvals"))],
)
def approve_day(
    payload: DayApprovalRequest,
    auth: AuthContext = Depends(require_capability(Capability.APPROVE_TIME)),
):
    return _run_transition(
        lambda db: approval_service.approve_day(
            auth.company_id, auth.user_id, payload.user_id, payload.date, db=db
        )
    )


@router.post(
    "/reject_day",
    response_model=TransitionResponse,
    dependencies=[Depends(rate_limited("approvals"))],
)
def reject_day(
    payload: DayRejectionRequest,
    auth: AuthContext = Depends(require_capability(Capability.APPROVE_TIME)),
):
    return _run_transition(
        lambda db: approval_service.reject_day(
            auth.company_id, auth.user_id, payload.user_id, payload.date, payload.reason, db=db
        )
    )


@router.post(
    "/lock",
    response_model=TransitionResponse,
    dependencies=[Depends(rate_limited("approvals"))],
)
def lock_week(
    payload: WeekLockRequest,
    auth: AuthContext = Depends(require_capability(Capability.LOCK_TIME)),
):
    return _run_transition(
        lambda db: approval_service.lock_week(
            auth.company_id, auth.user_id, payload.user_id, payload.week_start, db=db
        )
    )


@router.post(
    "/reopen",
    response_model=TransitionResponse,
    dependencies=[Depends(rate_limited("approvals"))],
)
def reopen_week(
    payload: WeekReopenRequest,
    auth: AuthContext = Depends(require_capability(Capability.LOCK_TIME)),
):
    return _run_transition(
        lambda db: approval_service.reopen_week(
            auth.company_id, auth.user_id, payload.user_id, payload.week_start, payload.reason, db=db
        )
    )
