import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import PermissionDeniedError, ValidationError
from app.database.db import transaction
from app.models.events import Event
from app.models.messages import MAX_MESSAGE_LENGTH, MAX_SUBJECT_LENGTH, EventMessage
from app.models.registrations import EventRegistration, RegistrationStatus
from app.models.users import User
from app.services import rules
from app.services.events import load_event
from app.services.notifications import NotificationKind, NotificationSender, safe_send

logger = logging.getLogger(__name__)


def _check_sender(event: Event, user: User) -> None:
    if event.created_by != user.id and not rules.is_administrator(user.role):
        raise PermissionDeniedError("Only the event creator or administrators can message attendees")


class EventMessageService:
    def __init__(self, notifier: NotificationSender, clock: Clock):
        self.notifier = notifier
        self.clock = clock

    def send_message_to_attendees(
        self, db: Session, event_id: int, user: User, subject: str, message: str
    ) -> EventMessage:
        subject = (subject or "").strip()
        message = (message or "").strip()
        if not subject:
            raise ValidationError("Subject is required")
        if len(subject) > MAX_SUBJECT_LENGTH:
            raise ValidationError(f"Subject must be at most {MAX_SUBJECT_LENGTH} characters")
        if not message:
            raise ValidationError("Message is required")
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Message must be at most {MAX_MESSAGE_LENGTH} characters")

        with transaction(db):
            event = load_event(db, event_id)
            _check_sender(event, user)
            attendee_ids = list(
                db.scalars(
                    select(EventRegistration.user_id).where(
                        EventRegistration.event_id == event_id,
                        EventRegistration.status == RegistrationStatus.REGISTERED.value,
                    )
                )
            )
            if not attendee_ids:
                raise ValidationError("No registered attendees found for this event")
            record = EventMessage(
                event_id=event_id,
                sender_id=user.id,
                subject=subject,
                message=message,
                recipient_count=len(attendee_ids),
                sent_at=self.clock.now(),
            )
            db.add(record)
            title = event.title

        logger.info("User %s messaged %d attendees of event %s", user.id, len(attendee_ids), event_id)
        safe_send(
            self.notifier,
            attendee_ids,
            NotificationKind.EVENT_MESSAGE,
            {"event_id": event_id, "title": title, "subject": subject, "message": message, "sender_name": user.name},
        )
        return record

    def list_event_messages(self, db: Session, event_id: int, user: User) -> list[EventMessage]:
        event = load_event(db, event_id)
        _check_sender(event, user)
        stmt = (
            select(EventMessage)
            .where(EventMessage.event_id == event_id)
            .order_by(EventMessage.sent_at.desc(), EventMessage.id.desc())
        )
        return list(db.scalars(stmt))
