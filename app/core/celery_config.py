from celery import Celery

from app.core.config import get_settings
from app.core.redis_config import get_redis_url


def make_celery(app_name: str = "campus_events") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url, include=["app.tasks"])
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    celery.conf.timezone = get_settings().TIMEZONE
    celery.conf.beat_schedule = {
        "scan-reminders": {
            "task": "app.tasks.scan_reminders_task",
            "schedule": float(get_settings().REMINDER_TICK_SECONDS),
        },
    }
    return celery


celery_app = make_celery()
