import math
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.authorization import Capability, require_capability
from app.database import SessionLocal
from app.deps.auth import AuthContext
from app.schemas.audit import AuditLogPage
from app.services import audit_service

router = APIRouter(prefix="/admin/audit_log", tags=["Audit Log"])


@router.get("", response_model=AuditLogPage)
def list_audit_log(
    entity_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    action: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    auth: AuthContext = Depends(require_capability(Capability.READ_AUDIT_LOG)),
):
    db = SessionLocal()
    try:
        rows, total = audit_service.list_audit_entries(
            db,
            auth.company_id,
            entity_id=entity_id,
            actor_id=actor_id,
            action=action,
            page=page,
            limit=limit,
        )
        return {
            "logs": rows,
            "total": total,
            "page": page,
            "total_pages": math.ceil(total / limit),
        }
    finally:
        db.close()
