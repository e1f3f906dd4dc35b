"""Validation rules and predicates shared by the event services."""
import re
from datetime import date, datetime, time
from typing import Iterable, Optional

from app.core.errors import ValidationError
from app.models.events import Event
from app.models.users import UserCategory, UserRole

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")

REVIEWER_ROLES = frozenset({UserRole.APPROVER.value, UserRole.ADMIN.value, UserRole.SUPERADMIN.value})
ADMIN_ROLES = frozenset({UserRole.ADMIN.value, UserRole.SUPERADMIN.value})


def parse_event_date(value: str) -> date:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


def parse_event_time(value: str) -> time:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationError("Invalid time format. Use HH:MM")
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def combine(day: str, at: str) -> datetime:
    return datetime.combine(parse_event_date(day), parse_event_time(at))


def validate_schedule(starts_at: datetime, opens_at: datetime, closes_at: datetime) -> None:
    """Registration must open before it closes, and close no later than the event starts."""
    if opens_at >= closes_at:
        raise ValidationError("Registration start must be before registration end")
    if closes_at > starts_at:
        raise ValidationError("Registration must end before or when the event starts")


def validate_max_attendees(value: Optional[int]) -> None:
    if value is not None and value < 1:
        raise ValidationError("Maximum attendees must be at least 1")


def normalize_categories(categories: Optional[Iterable[str]]) -> Optional[list[str]]:
    """Return a sorted, de-duplicated allow-list, or None when unrestricted."""
    if not categories:
        return None
    known = {c.value for c in UserCategory}
    result = set()
    for category in categories:
        if category not in known:
            raise ValidationError(f"Unknown user category: {category}")
        result.add(category)
    return sorted(result)


def category_allowed(category: str, allowed_categories: Optional[list[str]]) -> bool:
    if not allowed_categories:
        return True
    return category in allowed_categories


def is_event_in_past(event: Event, now: datetime) -> bool:
    return event.starts_at <= now


def is_registration_open(event: Event, now: datetime) -> bool:
    return event.registration_opens_at <= now < event.registration_closes_at


def is_reviewer(role: str) -> bool:
    return role in REVIEWER_ROLES


def is_administrator(role: str) -> bool:
    return role in ADMIN_ROLES


def can_modify_event(event: Event, user_id: int, role: str) -> bool:
    """Reviewers may modify any event; everyone else only their own."""
    return is_reviewer(role) or event.created_by == user_id
