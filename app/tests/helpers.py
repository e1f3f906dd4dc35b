from datetime import datetime

from app.models.users import User
from app.services.notifications import NotificationSender

NOW = datetime(2026, 3, 2, 9, 0)


class RecordingNotificationSender(NotificationSender):
    """Keeps every batch it is asked to send."""

    def __init__(self):
        self.sent = []

    def send_batch(self, recipient_ids, kind, data=None):
        self.sent.append((sorted(recipient_ids), kind, data or {}))

    def of_kind(self, kind):
        return [entry for entry in self.sent if entry[1] == kind]


class FailingNotificationSender(NotificationSender):
    def send_batch(self, recipient_ids, kind, data=None):
        raise RuntimeError("mail server unavailable")


def headers_for(user: User) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}
