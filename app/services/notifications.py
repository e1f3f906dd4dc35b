import enum
import logging
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    EVENT_APPROVED = "event_approved"
    REVISION_REQUESTED = "revision_requested"
    EVENT_CANCELLED = "event_cancelled"
    REGISTRATION_CONFIRMED = "registration_confirmed"
    EVENT_REMINDER = "event_reminder"
    REGISTRATION_DEADLINE_REMINDER = "registration_deadline_reminder"
    EVENT_MESSAGE = "event_message"


class NotificationSender:
    """Hands a notification for a group of users to the delivery channel.

    Sending is fire-and-forget: implementations log failures instead of raising,
    so a failed send never undoes the state change that triggered it.
    """

    def send_batch(self, recipient_ids: Iterable[int], kind: NotificationKind, data: Optional[dict[str, Any]] = None) -> None:
        raise NotImplementedError


class NullNotificationSender(NotificationSender):
    def send_batch(self, recipient_ids, kind, data=None) -> None:
        return None


class CeleryNotificationSender(NotificationSender):
    """Enqueue delivery on the Celery worker."""

    def send_batch(self, recipient_ids, kind, data=None) -> None:
        recipients = sorted(set(recipient_ids))
        if not recipients:
            return
        try:
            from app.tasks import deliver_notification_task

            deliver_notification_task.delay(recipients, NotificationKind(kind).value, data or {})
        except Exception:
            logger.exception("Failed to enqueue %s notification for %d recipients", kind, len(recipients))


def safe_send(sender: NotificationSender, recipient_ids: Iterable[int], kind: NotificationKind, data: Optional[dict[str, Any]] = None) -> None:
    """Call ``sender`` and swallow anything it raises after logging it."""
    try:
        sender.send_batch(list(recipient_ids), kind, data)
    except Exception:
        logger.exception("Notification %s could not be sent", kind.value)
