import logging
from functools import lru_cache

from sqlalchemy import select

from app.core.celery_config import celery_app
from app.core.config import get_settings
from app.database.db import SessionLocal
from app.models.users import User
from app.services.container import Services, build_services
from app.services.notifications import NotificationKind

logger = logging.getLogger(__name__)

SUBJECTS = {
    NotificationKind.EVENT_APPROVED: "Event Approved: {title}",
    NotificationKind.REVISION_REQUESTED: "Revision Requested: {title}",
    NotificationKind.EVENT_CANCELLED: "Event Cancelled: {title}",
    NotificationKind.REGISTRATION_CONFIRMED: "Registration Update for Event #{event_id}",
    NotificationKind.EVENT_REMINDER: "Reminder: {title} Tomorrow",
    NotificationKind.REGISTRATION_DEADLINE_REMINDER: "Registration Closing Soon: {title}",
    NotificationKind.EVENT_MESSAGE: "{subject}",
}


def render_subject(kind: NotificationKind, data: dict) -> str:
    try:
        return SUBJECTS[kind].format(**data)
    except KeyError:
        return kind.value.replace("_", " ").title()


@lru_cache
def worker_services() -> Services:
    """Services for this worker process, wired on first use and reused by every tick."""
    return build_services(get_settings())


@celery_app.task(bind=True)
def deliver_notification_task(self, recipient_ids: list[int], kind: str, data: dict):
    """Resolve recipient addresses and hand one message, all recipients in BCC, to the mail transport."""
    notification = NotificationKind(kind)
    db = SessionLocal()
    try:
        emails = list(db.scalars(select(User.email).where(User.id.in_(recipient_ids)).order_by(User.id)))
    finally:
        db.close()

    if not emails:
        logger.info("No deliverable recipients for %s notification", kind)
        return 0
    subject = render_subject(notification, data)
    # Mail transport is provided by the deployment; delivery is recorded here
    logger.info("Delivering %r to %d recipients", subject, len(emails), extra={"bcc": emails})
    return len(emails)


@celery_app.task(bind=True)
def scan_reminders_task(self):
    """One reminder scheduler tick. Celery beat runs this every REMINDER_TICK_SECONDS."""
    db = SessionLocal()
    try:
        sent = worker_services().reminders.run_tick(db)
    finally:
        db.close()
    logger.info("Reminder tick finished: %s", sent)
    return sent
