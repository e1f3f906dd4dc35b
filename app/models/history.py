import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.db import Base


class ApprovalAction(str, enum.Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


class EventApprovalHistory(Base):
    """Append-only audit trail of event status transitions.

    ``performer_name`` is copied from the acting user when the row is written and
    is never refreshed, so the trail keeps the name the actor had at the time.
    """

    __tablename__ = "event_approval_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    performed_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    performer_name: Mapped[str] = mapped_column(String(120), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status_before: Mapped[str] = mapped_column(String(32), nullable=False)
    status_after: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())

    event: Mapped["Event"] = relationship(back_populates="history")
