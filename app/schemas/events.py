from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ---------- Event ----------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    event_date: str = Field(description="YYYY-MM-DD")
    event_time: str = Field(description="HH:MM")
    registration_start_date: str
    registration_start_time: str
    registration_end_date: str
    registration_end_time: str
    location_id: int = Field(ge=1)
    max_attendees: Optional[int] = None
    allowed_categories: Optional[list[str]] = None
    status: Optional[str] = None


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    event_date: Optional[str] = None
    event_time: Optional[str] = None
    registration_start_date: Optional[str] = None
    registration_start_time: Optional[str] = None
    registration_end_date: Optional[str] = None
    registration_end_time: Optional[str] = None
    location_id: Optional[int] = Field(default=None, ge=1)
    max_attendees: Optional[int] = None
    allowed_categories: Optional[list[str]] = None


class RevisionRequest(BaseModel):
    revision_comments: str = ""


class EventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    starts_at: datetime
    registration_opens_at: datetime
    registration_closes_at: datetime
    location_id: int
    max_attendees: Optional[int] = None
    allowed_categories: Optional[list[str]] = None
    created_by: int
    status: str
    approved_by: Optional[int] = None
    approval_date: Optional[datetime] = None
    revision_comments: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EventPage(BaseModel):
    events: list[EventOut]
    total: int
    page: int
    total_pages: int


class EventStatsOut(BaseModel):
    event_id: int
    total_registered: int
    total_waitlisted: int
    total_cancelled: int
    max_attendees: Optional[int] = None
    is_full: bool
    can_register: bool


# ---------- Approval history ----------
class ApprovalHistoryOut(BaseModel):
    id: int
    event_id: int
    action: str
    performed_by: int
    performer_name: str
    comments: Optional[str] = None
    status_before: str
    status_after: str
    created_at: datetime

    class Config:
        from_attributes = True


class ReminderLogOut(BaseModel):
    id: int
    event_id: int
    user_id: Optional[int] = None
    reminder_type: str
    sent_at: datetime

    class Config:
        from_attributes = True
