import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database.db import Base


class ReminderType(str, enum.Enum):
    EVENT_ATTENDANCE = "event_attendance"
    REGISTRATION_DEADLINE = "registration_deadline"


class ReminderLog(Base):
    __tablename__ = "reminder_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    # NULL marks a batch sent to every eligible recipient at once
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    reminder_type: Mapped[str] = mapped_column(String(32), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_reminder_logs_event_type", "event_id", "reminder_type"),
        Index(
            "uq_reminder_logs_batch",
            "event_id",
            "reminder_type",
            unique=True,
            sqlite_where=user_id.is_(None),
            postgresql_where=user_id.is_(None),
        ),
    )
