from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    entity_type: str
    entity_id: str
    action: str
    from_status: Optional[str]
    to_status: Optional[str]
    actor_id: str
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias="metadata_")
    created_at: datetime


class AuditLogPage(BaseModel):
    logs: list[AuditLogResponse]
    total: int
    page: int
    total_pages: int
