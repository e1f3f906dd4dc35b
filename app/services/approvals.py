import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import (
    EventInPastError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from app.database.db import transaction
from app.models.events import Event, EventStatus
from app.models.history import ApprovalAction
from app.models.registrations import ACTIVE_STATUSES, EventRegistration
from app.models.users import User, UserRole
from app.services import rules
from app.services.events import load_event
from app.services.history import ApprovalHistoryRecorder
from app.services.notifications import NotificationKind, NotificationSender, safe_send

logger = logging.getLogger(__name__)

SUBMITTABLE = (EventStatus.DRAFT.value, EventStatus.REVISION_REQUESTED.value)


class EventApprovalService:
    """State machine for the event approval workflow.

    Every transition checks the caller, then the current status, then commits the
    new status together with exactly one approval history row.
    """

    def __init__(self, history: ApprovalHistoryRecorder, notifier: NotificationSender, clock: Clock):
        self.history = history
        self.notifier = notifier
        self.clock = clock

    def submit_for_approval(self, db: Session, event_id: int, user: User) -> Event:
        with transaction(db):
            event = load_event(db, event_id, for_update=True)
            if user.role != UserRole.USER.value:
                raise PermissionDeniedError("Only regular users submit events for approval")
            if event.created_by != user.id:
                raise PermissionDeniedError("Only the event creator can submit for approval")
            if event.status not in SUBMITTABLE:
                raise InvalidTransitionError(
                    "Only draft or revision requested events can be submitted for approval"
                )
            self._apply(
                db,
                event,
                EventStatus.PENDING_APPROVAL,
                ApprovalAction.SUBMITTED,
                user,
                revision_comments=None,
            )
        logger.info("Event %s submitted for approval by user %s", event_id, user.id)
        return event

    def approve_event(self, db: Session, event_id: int, user: User) -> Event:
        with transaction(db):
            event = load_event(db, event_id, for_update=True)
            if not rules.is_reviewer(user.role):
                raise PermissionDeniedError("Insufficient permissions to approve events")
            if event.status != EventStatus.PENDING_APPROVAL.value:
                raise InvalidTransitionError("Only events pending approval can be approved")
            now = self.clock.now()
            if rules.is_event_in_past(event, now):
                raise EventInPastError("Cannot approve events that are in the past")
            self._apply(
                db,
                event,
                EventStatus.PUBLISHED,
                ApprovalAction.APPROVED,
                user,
                approved_by=user.id,
                approval_date=now,
            )
        logger.info("Event %s approved by user %s", event_id, user.id)
        safe_send(self.notifier, [event.created_by], NotificationKind.EVENT_APPROVED, _payload(event))
        return event

    def request_revision(self, db: Session, event_id: int, user: User, comments: Optional[str]) -> Event:
        with transaction(db):
            event = load_event(db, event_id, for_update=True)
            if not rules.is_reviewer(user.role):
                raise PermissionDeniedError("Insufficient permissions to request event revision")
            if event.status != EventStatus.PENDING_APPROVAL.value:
                raise InvalidTransitionError("Only events pending approval can have revision requested")
            comments = (comments or "").strip()
            if not comments:
                raise ValidationError("Revision comments are required when requesting revision")
            self._apply(
                db,
                event,
                EventStatus.REVISION_REQUESTED,
                ApprovalAction.REVISION_REQUESTED,
                user,
                comments=comments,
                revision_comments=comments,
                approved_by=user.id,
                approval_date=self.clock.now(),
            )
        logger.info("Revision requested for event %s by user %s", event_id, user.id)
        safe_send(
            self.notifier,
            [event.created_by],
            NotificationKind.REVISION_REQUESTED,
            _payload(event, comments=comments),
        )
        return event

    def publish_event(self, db: Session, event_id: int, user: User) -> Event:
        """Publish a draft directly, skipping review. Reviewers only."""
        with transaction(db):
            event = load_event(db, event_id, for_update=True)
            if not rules.is_reviewer(user.role):
                raise PermissionDeniedError(
                    "Regular users must submit events for approval rather than publishing directly"
                )
            if event.status != EventStatus.DRAFT.value:
                raise InvalidTransitionError("Only draft events can be published directly")
            now = self.clock.now()
            if rules.is_event_in_past(event, now):
                raise EventInPastError("Cannot publish events that are in the past")
            self._apply(
                db,
                event,
                EventStatus.PUBLISHED,
                ApprovalAction.PUBLISHED,
                user,
                approved_by=user.id,
                approval_date=now,
            )
        logger.info("Event %s published by user %s", event_id, user.id)
        safe_send(self.notifier, [event.created_by], NotificationKind.EVENT_APPROVED, _payload(event))
        return event

    def cancel_event(self, db: Session, event_id: int, user: User) -> Event:
        with transaction(db):
            event = load_event(db, event_id, for_update=True)
            if not rules.can_modify_event(event, user.id, user.role):
                raise PermissionDeniedError("Insufficient permissions to cancel this event")
            if event.is_terminal:
                raise InvalidTransitionError(f"Cannot cancel an event that is {event.status}")
            self._apply(db, event, EventStatus.CANCELLED, ApprovalAction.CANCELLED, user)
            attendee_ids = list(
                db.scalars(
                    select(EventRegistration.user_id).where(
                        EventRegistration.event_id == event.id,
                        EventRegistration.status.in_(ACTIVE_STATUSES),
                    )
                )
            )
        logger.info("Event %s cancelled by user %s", event_id, user.id)
        safe_send(self.notifier, attendee_ids, NotificationKind.EVENT_CANCELLED, _payload(event))
        return event

    def _apply(
        self,
        db: Session,
        event: Event,
        status_after: EventStatus,
        action: ApprovalAction,
        performer: User,
        comments: Optional[str] = None,
        **fields,
    ) -> None:
        status_before = event.status
        event.status = status_after.value
        for name, value in fields.items():
            setattr(event, name, value)
        self.history.record(
            db,
            event=event,
            action=action,
            performer=performer,
            status_before=status_before,
            status_after=status_after.value,
            comments=comments,
        )


def _payload(event: Event, **extra) -> dict:
    data = {
        "event_id": event.id,
        "title": event.title,
        "starts_at": event.starts_at.isoformat(timespec="minutes"),
    }
    data.update(extra)
    return data
