from datetime import datetime

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)


class MessageOut(BaseModel):
    id: int
    event_id: int
    sender_id: int
    subject: str
    message: str
    recipient_count: int
    sent_at: datetime

    class Config:
        from_attributes = True
