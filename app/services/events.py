import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import (
    EventInPastError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.database.db import transaction
from app.models.events import Event, EventStatus
from app.models.history import ApprovalAction
from app.models.locations import Location
from app.models.registrations import EventRegistration, RegistrationStatus
from app.models.users import User
from app.schemas.events import EventCreate, EventUpdate
from app.services import rules
from app.services.history import ApprovalHistoryRecorder

logger = logging.getLogger(__name__)

CREATABLE_STATUSES = (EventStatus.DRAFT.value, EventStatus.PUBLISHED.value)


def load_event(db: Session, event_id: int, *, for_update: bool = False) -> Event:
    stmt = select(Event).where(Event.id == event_id)
    if for_update:
        stmt = stmt.with_for_update()
    event = db.scalars(stmt).first()
    if event is None:
        raise NotFoundError("Event not found")
    return event


def _active_location(db: Session, location_id: int) -> Location:
    location = db.get(Location, location_id)
    if location is None:
        raise NotFoundError("Location not found")
    if not location.is_active:
        raise ValidationError("Location is not active")
    return location


class EventService:
    """Create, edit, delete and list events. Status changes go through EventApprovalService."""

    def __init__(self, history: ApprovalHistoryRecorder, clock: Clock):
        self.history = history
        self.clock = clock

    def create_event(self, db: Session, data: EventCreate, user: User) -> Event:
        requested = data.status or EventStatus.DRAFT.value
        if requested not in CREATABLE_STATUSES:
            raise ValidationError("Events can only be created as draft or published")
        if requested == EventStatus.PUBLISHED.value and not rules.is_reviewer(user.role):
            raise PermissionDeniedError(
                "Regular users cannot create published events directly. "
                "Please create a draft and submit for approval."
            )

        starts_at = rules.combine(data.event_date, data.event_time)
        opens_at = rules.combine(data.registration_start_date, data.registration_start_time)
        closes_at = rules.combine(data.registration_end_date, data.registration_end_time)
        rules.validate_schedule(starts_at, opens_at, closes_at)
        rules.validate_max_attendees(data.max_attendees)
        categories = rules.normalize_categories(data.allowed_categories)

        now = self.clock.now()
        publish = requested == EventStatus.PUBLISHED.value
        if publish and starts_at <= now:
            raise EventInPastError("Cannot create published events in the past")

        with transaction(db):
            _active_location(db, data.location_id)
            event = Event(
                title=data.title.strip(),
                description=data.description,
                starts_at=starts_at,
                registration_opens_at=opens_at,
                registration_closes_at=closes_at,
                location_id=data.location_id,
                max_attendees=data.max_attendees,
                allowed_categories=categories,
                created_by=user.id,
                status=requested,
            )
            if publish:
                event.approved_by = user.id
                event.approval_date = now
            db.add(event)
            db.flush()
            if publish:
                self.history.record(
                    db,
                    event=event,
                    action=ApprovalAction.PUBLISHED,
                    performer=user,
                    status_before=EventStatus.DRAFT.value,
                    status_after=EventStatus.PUBLISHED.value,
                )
        logger.info("Event %s created by user %s as %s", event.id, user.id, requested)
        return event

    def get_event(self, db: Session, event_id: int) -> Event:
        return load_event(db, event_id)

    def list_events(
        self, db: Session, *, status: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Event], int]:
        stmt = select(Event)
        count_stmt = select(func.count(Event.id))
        if status:
            stmt = stmt.where(Event.status == status)
            count_stmt = count_stmt.where(Event.status == status)
        total = db.scalar(count_stmt) or 0
        stmt = stmt.order_by(Event.starts_at.asc(), Event.id.asc()).offset((page - 1) * limit).limit(limit)
        return list(db.scalars(stmt)), int(total)

    def list_user_events(self, db: Session, user_id: int) -> list[Event]:
        stmt = select(Event).where(Event.created_by == user_id).order_by(Event.starts_at.asc())
        return list(db.scalars(stmt))

    def list_pending_approval(self, db: Session, user: User) -> list[Event]:
        if not rules.is_reviewer(user.role):
            raise PermissionDeniedError("Only approvers can review pending events")
        stmt = (
            select(Event)
            .where(Event.status == EventStatus.PENDING_APPROVAL.value)
            .order_by(Event.updated_at.asc(), Event.id.asc())
        )
        return list(db.scalars(stmt))

    def update_event(self, db: Session, event_id: int, data: EventUpdate, user: User) -> Event:
        changes = data.model_dump(exclude_unset=True)
        with transaction(db):
            event = load_event(db, event_id, for_update=True)
            if not rules.can_modify_event(event, user.id, user.role):
                raise PermissionDeniedError("Insufficient permissions to modify this event")
            if event.is_terminal:
                raise InvalidTransitionError(f"Cannot modify an event that is {event.status}")

            starts_at = self._merge(event.starts_at, changes.get("event_date"), changes.get("event_time"))
            opens_at = self._merge(
                event.registration_opens_at,
                changes.get("registration_start_date"),
                changes.get("registration_start_time"),
            )
            closes_at = self._merge(
                event.registration_closes_at,
                changes.get("registration_end_date"),
                changes.get("registration_end_time"),
            )
            rules.validate_schedule(starts_at, opens_at, closes_at)
            if (
                event.status == EventStatus.PUBLISHED.value
                and starts_at != event.starts_at
                and starts_at <= self.clock.now()
            ):
                raise EventInPastError("Cannot move a published event into the past")
            event.starts_at = starts_at
            event.registration_opens_at = opens_at
            event.registration_closes_at = closes_at

            if "title" in changes:
                title = (changes["title"] or "").strip()
                if not title:
                    raise ValidationError("Event title is required")
                event.title = title
            if "description" in changes:
                event.description = changes["description"]
            if "location_id" in changes and changes["location_id"] != event.location_id:
                _active_location(db, changes["location_id"])
                event.location_id = changes["location_id"]
            if "max_attendees" in changes:
                self._apply_capacity(db, event, changes["max_attendees"])
            if "allowed_categories" in changes:
                event.allowed_categories = rules.normalize_categories(changes["allowed_categories"])
        logger.info("Event %s updated by user %s", event_id, user.id)
        return event

    def delete_event(self, db: Session, event_id: int, user: User) -> None:
        with transaction(db):
            event = load_event(db, event_id, for_update=True)
            if not rules.can_modify_event(event, user.id, user.role):
                raise PermissionDeniedError("Insufficient permissions to delete this event")
            db.delete(event)
        logger.info("Event %s deleted by user %s", event_id, user.id)

    @staticmethod
    def _merge(current, day: Optional[str], at: Optional[str]):
        if day is None and at is None:
            return current
        day = day if day is not None else current.date().isoformat()
        at = at if at is not None else current.strftime("%H:%M")
        return rules.combine(day, at)

    @staticmethod
    def _apply_capacity(db: Session, event: Event, max_attendees: Optional[int]) -> None:
        rules.validate_max_attendees(max_attendees)
        if max_attendees is not None:
            registered = db.scalar(
                select(func.count(EventRegistration.id)).where(
                    EventRegistration.event_id == event.id,
                    EventRegistration.status == RegistrationStatus.REGISTERED.value,
                )
            )
            if (registered or 0) > max_attendees:
                raise ValidationError(
                    f"Maximum attendees cannot be lower than the {registered} users already registered"
                )
        event.max_attendees = max_attendees
