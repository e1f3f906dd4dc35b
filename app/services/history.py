from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.events import Event
from app.models.history import ApprovalAction, EventApprovalHistory
from app.models.users import User


class ApprovalHistoryRecorder:
    """Append-only trail of event status transitions."""

    def record(
        self,
        db: Session,
        *,
        event: Event,
        action: ApprovalAction,
        performer: User,
        status_before: str,
        status_after: str,
        comments: Optional[str] = None,
    ) -> EventApprovalHistory:
        """Add one history row to the caller's transaction. Does not commit."""
        entry = EventApprovalHistory(
            event_id=event.id,
            action=action.value,
            performed_by=performer.id,
            performer_name=performer.name,
            comments=comments,
            status_before=status_before,
            status_after=status_after,
        )
        db.add(entry)
        db.flush()
        return entry

    def get_event_history(self, db: Session, event_id: int) -> list[EventApprovalHistory]:
        stmt = (
            select(EventApprovalHistory)
            .where(EventApprovalHistory.event_id == event_id)
            .order_by(EventApprovalHistory.id.asc())
        )
        return list(db.scalars(stmt))

    def get_latest_action(self, db: Session, event_id: int) -> Optional[EventApprovalHistory]:
        stmt = (
            select(EventApprovalHistory)
            .where(EventApprovalHistory.event_id == event_id)
            .order_by(EventApprovalHistory.id.desc())
            .limit(1)
        )
        return db.scalars(stmt).first()

    def get_performer_history(self, db: Session, user_id: int) -> list[EventApprovalHistory]:
        stmt = (
            select(EventApprovalHistory)
            .where(EventApprovalHistory.performed_by == user_id)
            .order_by(EventApprovalHistory.id.desc())
        )
        return list(db.scalars(stmt))
