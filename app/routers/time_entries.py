from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.authorization import Capability, require_capability
from app.core.errors import ApprovalError, to_http_exception
from app.core.rate_limit import rate_limited
from app.database import SessionLocal
from app.deps.auth import AuthContext
from app.services import approval_service, time_entry_service
from app.schemas.time_entry import (
    CountResponse,
    SubmitEntriesRequest,
    SubmitWeekRequest,
    TimeEntryCreate,
    TimeEntryResponse,
    TimeEntryUpdate,
    TransitionResponse,
)

router = APIRouter(
    prefix="/time_entries",
    tags=["Time Entries"],
)


@router.get("", response_model=list[TimeEntryResponse])
def list_own_time_entries(
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    db = SessionLocal()
    try:
        return time_entry_service.list_time_entries(
            db,
            auth.company_id,
            user_id=auth.user_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )
    finally:
        db.close()


@router.post(
    "",
    response_model=TimeEntryResponse,
    status_code=201,
    dependencies=[Depends(rate_limited("time_entries:write"))],
)
def create_time_entry(
    payload: TimeEntryCreate,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        entry = time_entry_service.create_time_entry(
            db,
            auth.company_id,
            auth.user_id,
            payload.date,
            payload.hours,
            project_id=payload.project_id,
            comment=payload.comment,
            billing_status=payload.billing_status,
        )
        db.commit()
        return entry
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.patch(
    "/{entry_id}",
    response_model=TimeEntryResponse,
    dependencies=[Depends(rate_limited("time_entries:write"))],
)
def update_time_entry(
    entry_id: str,
    payload: TimeEntryUpdate,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        entry = time_entry_service.update_time_entry(
            db,
            auth.company_id,
            auth.user_id,
            entry_id,
            payload.model_dump(exclude_unset=True),
        )
        db.commit()
        return entry
    except ApprovalError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.delete(
    "/{entry_id}",
    status_code=204,
    dependencies=[Depends(rate_limited("time_entries:write"))],
)
def delete_time_entry(
    entry_id: str,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        time_entry_service.delete_time_entry(db, auth.company_id, auth.user_id, entry_id)
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
    dependencies=[Depends(rate_limited("time_entries:submit"))],
)
def submit_time_entries(
    payload: SubmitEntriesRequest,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        result = approval_service.submit_time_entries(
            auth.company_id,
            auth.user_id,
            payload.ids,
            db=db,
        )
        db.commit()
        return {"count": result.entry_count}
    except ApprovalError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post(
    "/submit_week",
    response_model=TransitionResponse,
    dependencies=[Depends(rate_limited("time_entries:submit"))],
)
def submit_week(
    payload: SubmitWeekRequest,
    auth: AuthContext = Depends(require_capability(Capability.SUBMIT_OWN)),
):
    db = SessionLocal()
    try:
        result = approval_service.submit_week(
            auth.company_id,
            auth.user_id,
            payload.week_start,
            db=db,
        )
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
