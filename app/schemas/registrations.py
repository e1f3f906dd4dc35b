from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class RegistrationOut(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: str
    registration_date: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RegistrationStatusOut(BaseModel):
    is_registered: bool
    status: Optional[str] = None


class AttendeeOut(BaseModel):
    id: int
    user_id: int
    user_name: str
    registration_date: datetime
