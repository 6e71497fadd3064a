import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TimeEntryCreate(BaseModel):
    date: dt.date
    hours: float = Field(ge=0)
    project_id: Optional[str] = None
    comment: Optional[str] = Field(default=None, max_length=2000)
    billing_status: str = "billable"


class TimeEntryUpdate(BaseModel):
    date: Optional[dt.date] = None
    hours: Optional[float] = Field(default=None, ge=0)
    project_id: Optional[str] = None
    comment: Optional[str] = Field(default=None, max_length=2000)
    billing_status: Optional[str] = None


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: int
    user_id: str
    project_id: Optional[str]
    date: dt.date
    hours: float
    comment: Optional[str]
    billing_status: str
    approval_status: str
    submitted_at: Optional[dt.datetime]
    submitted_by: Optional[str]
    first_submitted_at: Optional[dt.datetime]
    approved_at: Optional[dt.datetime]
    approved_by: Optional[str]
    rejected_at: Optional[dt.datetime]
    rejected_by: Optional[str]
    locked_at: Optional[dt.datetime]
    locked_by: Optional[str]


class SubmitEntriesRequest(BaseModel):
    ids: list[str]


class SubmitWeekRequest(BaseModel):
    week_start: dt.date = Field(description="Any date inside the week to submit.")


class CountResponse(BaseModel):
    count: int


class TransitionResponse(BaseModel):
    success: bool = True
    entry_count: int
    total_hours: Optional[float] = None
