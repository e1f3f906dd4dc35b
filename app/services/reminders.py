import logging
from datetime import timedelta
from typing import Callable

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.models.events import Event, EventStatus
from app.models.registrations import ACTIVE_STATUSES, EventRegistration, RegistrationStatus
from app.models.reminders import ReminderLog, ReminderType
from app.models.users import User
from app.services.notifications import NotificationKind, NotificationSender

logger = logging.getLogger(__name__)


class ReminderService:
    """Periodic reminder scan backed by a de-duplication log.

    Each tick looks for published events whose start (or registration close) lies
    about ``lead`` ahead of now, within +/- ``window``. An event is reminded at most
    once per reminder type: the batch log row is claimed before anything is sent,
    and later ticks that still see the event in the window skip it.
    """

    def __init__(
        self,
        notifier: NotificationSender,
        clock: Clock,
        *,
        lead: timedelta = timedelta(hours=24),
        window: timedelta = timedelta(minutes=15),
        tick: timedelta = timedelta(minutes=1),
    ):
        self.notifier = notifier
        self.clock = clock
        self.lead = lead
        # Window must be wider than the tick, or a late tick could skip an event
        self.window = max(window, 2 * tick)

    def run_tick(self, db: Session) -> dict[str, int]:
        return {
            ReminderType.EVENT_ATTENDANCE.value: self._run_scan(
                db, ReminderType.EVENT_ATTENDANCE, self.send_event_attendance_reminders
            ),
            ReminderType.REGISTRATION_DEADLINE.value: self._run_scan(
                db, ReminderType.REGISTRATION_DEADLINE, self.send_registration_deadline_reminders
            ),
        }

    @staticmethod
    def _run_scan(db: Session, reminder_type: ReminderType, scan: Callable[[Session], int]) -> int:
        try:
            return scan(db)
        except Exception:
            db.rollback()
            logger.exception("%s reminder scan failed", reminder_type.value)
            return 0

    def send_event_attendance_reminders(self, db: Session) -> int:
        events = self.find_events_in_window(db, Event.starts_at)
        logger.info("Found %d events needing attendance reminders", len(events))
        return self._process(
            db,
            [event.id for event in events],
            ReminderType.EVENT_ATTENDANCE,
            NotificationKind.EVENT_REMINDER,
            self._registered_user_ids,
        )

    def send_registration_deadline_reminders(self, db: Session) -> int:
        events = self.find_events_in_window(db, Event.registration_closes_at)
        logger.info("Found %d events needing registration deadline reminders", len(events))
        return self._process(
            db,
            [event.id for event in events],
            ReminderType.REGISTRATION_DEADLINE,
            NotificationKind.REGISTRATION_DEADLINE_REMINDER,
            self._unregistered_user_ids,
        )

    def find_events_in_window(self, db: Session, column) -> list[Event]:
        now = self.clock.now()
        start = now + self.lead - self.window
        end = now + self.lead + self.window
        stmt = (
            select(Event)
            .where(
                Event.status == EventStatus.PUBLISHED.value,
                column >= start,
                column <= end,
            )
            .order_by(column.asc(), Event.id.asc())
        )
        return list(db.scalars(stmt))

    def has_batch_been_sent(self, db: Session, event_id: int, reminder_type: ReminderType) -> bool:
        stmt = select(
            exists().where(
                ReminderLog.event_id == event_id,
                ReminderLog.user_id.is_(None),
                ReminderLog.reminder_type == reminder_type.value,
            )
        )
        return bool(db.scalar(stmt))

    def get_reminder_logs(self, db: Session, event_id: int) -> list[ReminderLog]:
        stmt = select(ReminderLog).where(ReminderLog.event_id == event_id).order_by(ReminderLog.sent_at.desc())
        return list(db.scalars(stmt))

    def _process(
        self,
        db: Session,
        event_ids: list[int],
        reminder_type: ReminderType,
        kind: NotificationKind,
        recipients_for: Callable[[Session, Event], list[int]],
    ) -> int:
        sent = 0
        # Ids, not instances: every claim commits and expires the loaded events
        for event_id in event_ids:
            try:
                event = db.get(Event, event_id)
                if event is None or event.status != EventStatus.PUBLISHED.value:
                    logger.info("Event %s left the %s scan before it was reached", event_id, reminder_type.value)
                    continue
                if self._process_event(db, event, reminder_type, kind, recipients_for):
                    sent += 1
            except Exception:
                db.rollback()
                logger.exception("Error processing %s reminder for event %s", reminder_type.value, event_id)
        return sent

    def _process_event(
        self,
        db: Session,
        event: Event,
        reminder_type: ReminderType,
        kind: NotificationKind,
        recipients_for: Callable[[Session, Event], list[int]],
    ) -> bool:
        if self.has_batch_been_sent(db, event.id, reminder_type):
            logger.info("Skipping duplicate %s reminder for event %s", reminder_type.value, event.id)
            return False

        recipient_ids = recipients_for(db, event)
        if not recipient_ids:
            return False

        payload = {
            "event_id": event.id,
            "title": event.title,
            "starts_at": event.starts_at.isoformat(timespec="minutes"),
            "registration_closes_at": event.registration_closes_at.isoformat(timespec="minutes"),
        }
        if not self._claim_batch(db, event.id, reminder_type):
            logger.info("Reminder %s for event %s already claimed", reminder_type.value, event.id)
            return False

        # Not safe_send: a send error must reach the per-event handler in _process
        self.notifier.send_batch(recipient_ids, kind, payload)
        logger.info(
            "Sent %s reminder for event %s to %d users", reminder_type.value, payload["event_id"], len(recipient_ids)
        )
        return True

    def _claim_batch(self, db: Session, event_id: int, reminder_type: ReminderType) -> bool:
        """Write the batch log row. False when another tick already wrote it."""
        now = self.clock.now()
        db.add(ReminderLog(event_id=event_id, user_id=None, reminder_type=reminder_type.value, sent_at=now))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return False
        return True

    @staticmethod
    def _registered_user_ids(db: Session, event: Event) -> list[int]:
        stmt = (
            select(EventRegistration.user_id)
            .where(
                EventRegistration.event_id == event.id,
                EventRegistration.status == RegistrationStatus.REGISTERED.value,
            )
            .order_by(EventRegistration.user_id)
        )
        return list(db.scalars(stmt))

    @staticmethod
    def _unregistered_user_ids(db: Session, event: Event) -> list[int]:
        active = select(EventRegistration.user_id).where(
            EventRegistration.event_id == event.id,
            EventRegistration.status.in_(ACTIVE_STATUSES),
        )
        stmt = select(User.id).where(User.id.not_in(active)).order_by(User.id)
        return list(db.scalars(stmt))
