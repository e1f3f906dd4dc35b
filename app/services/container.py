from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import redis

from app.core.clock import Clock
from app.core.config import Settings
from app.core.redis_config import get_redis_client
from app.services.approvals import EventApprovalService
from app.services.events import EventService
from app.services.history import ApprovalHistoryRecorder
from app.services.messages import EventMessageService
from app.services.notifications import CeleryNotificationSender, NotificationSender
from app.services.registrations import RegistrationService
from app.services.reminders import ReminderService


@dataclass
class Services:
    clock: Clock
    notifier: NotificationSender
    history: ApprovalHistoryRecorder
    events: EventService
    approvals: EventApprovalService
    registrations: RegistrationService
    reminders: ReminderService
    messages: EventMessageService


def build_services(
    settings: Settings,
    *,
    redis_client: Optional[redis.Redis] = None,
    notifier: Optional[NotificationSender] = None,
    clock: Optional[Clock] = None,
) -> Services:
    """Wire every service once, at process start."""
    clock = clock or Clock(settings.TIMEZONE)
    notifier = notifier or CeleryNotificationSender()
    redis_client = redis_client if redis_client is not None else get_redis_client()
    history = ApprovalHistoryRecorder()

    return Services(
        clock=clock,
        notifier=notifier,
        history=history,
        events=EventService(history, clock),
        approvals=EventApprovalService(history, notifier, clock),
        registrations=RegistrationService(
            redis_client,
            notifier,
            clock,
            lock_timeout=settings.REGISTRATION_LOCK_TIMEOUT,
            lock_wait=settings.REGISTRATION_LOCK_WAIT,
        ),
        reminders=ReminderService(
            notifier,
            clock,
            lead=timedelta(hours=settings.REMINDER_LEAD_HOURS),
            window=timedelta(minutes=settings.REMINDER_WINDOW_MINUTES),
            tick=timedelta(seconds=settings.REMINDER_TICK_SECONDS),
        ),
        messages=EventMessageService(notifier, clock),
    )
