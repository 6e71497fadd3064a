import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.time_entry import TimeEntryResponse


class DayApprovalRequest(BaseModel):
    user_id: str = Field(min_length=1)
    date: dt.date


class DayRejectionRequest(DayApprovalRequest):
    reason: Optional[str] = Field(default=None, max_length=1000)


class WeekLockRequest(BaseModel):
    user_id: str = Field(min_length=1)
    week_start: dt.date = Field(description="Any date inside the target week.")


class WeekReopenRequest(WeekLockRequest):
    reason: Optional[str] = Field(default=None, max_length=1000)


class WeekSubmission(BaseModel):
    user_id: str
    week_start: str
    total_hours: float
    billable_hours: float
    entry_count: int
    submitted_at: Optional[dt.datetime]
    approval_status: str
    entries: list[TimeEntryResponse]


class WeekSubmissionsResponse(BaseModel):
    week_submissions: list[WeekSubmission]


class PendingCountsResponse(BaseModel):
    counts: dict[str, int]
