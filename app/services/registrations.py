import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import redis
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import (
    AlreadyRegisteredError,
    AlreadyWaitlistedError,
    CategoryRestrictedError,
    EventInPastError,
    InvalidTransitionError,
    NotRegisteredError,
    PermissionDeniedError,
    RegistrationBusyError,
    ValidationError,
)
from app.database.db import transaction
from app.models.events import Event, EventStatus
from app.models.registrations import ACTIVE_STATUSES, EventRegistration, RegistrationStatus
from app.models.users import User
from app.services import rules
from app.services.events import load_event
from app.services.notifications import NotificationKind, NotificationSender, safe_send

logger = logging.getLogger(__name__)


class RegistrationService:
    """Capacity-aware registration with a FIFO waitlist.

    Register and unregister hold a Redis lock per event for the whole transaction,
    so two callers can never both see the last free seat.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        notifier: NotificationSender,
        clock: Clock,
        *,
        lock_timeout: int = 10,
        lock_wait: int = 5,
    ):
        self.redis = redis_client
        self.notifier = notifier
        self.clock = clock
        self.lock_timeout = lock_timeout
        self.lock_wait = lock_wait

    @contextmanager
    def _event_lock(self, event_id: int) -> Iterator[None]:
        lock = self.redis.lock(f"event_lock:{event_id}", timeout=self.lock_timeout, blocking_timeout=self.lock_wait)
        try:
            # Acquire the lock - only one process can proceed at a time
            if not lock.acquire(blocking=True, blocking_timeout=self.lock_wait):
                raise RegistrationBusyError("Registration is busy for this event, please try again.")
        except redis.exceptions.LockError:  # type: ignore
            raise RegistrationBusyError("Registration is busy for this event, please try again.")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError:  # type: ignore
                # Lock expired while we held it; the transaction has already finished
                logger.warning("Registration lock for event %s expired before release", event_id)

    def register_for_event(self, db: Session, event_id: int, user: User) -> EventRegistration:
        with self._event_lock(event_id), transaction(db):
            event = load_event(db, event_id, for_update=True)
            now = self.clock.now()
            self._check_open_for(event, user, now)

            registration = self.find_registration(db, event_id, user.id)
            if registration is not None:
                if registration.status == RegistrationStatus.REGISTERED.value:
                    raise AlreadyRegisteredError("User is already registered for this event")
                if registration.status == RegistrationStatus.WAITLISTED.value:
                    raise AlreadyWaitlistedError("User is already on the waitlist for this event")

            status = self._allocate(db, event)
            if registration is None:
                registration = EventRegistration(event_id=event_id, user_id=user.id)
                db.add(registration)
            # A reactivated row re-enters the queue at the back
            registration.status = status
            registration.registration_date = now
            db.flush()
            registration_id = registration.id

        logger.info("User %s %s for event %s", user.id, status, event_id)
        safe_send(
            self.notifier,
            [user.id],
            NotificationKind.REGISTRATION_CONFIRMED,
            {"event_id": event_id, "registration_id": registration_id, "status": status},
        )
        return registration

    def unregister_from_event(self, db: Session, event_id: int, user: User) -> EventRegistration:
        with self._event_lock(event_id), transaction(db):
            load_event(db, event_id, for_update=True)
            registration = self.find_registration(db, event_id, user.id)
            if registration is None or registration.status == RegistrationStatus.CANCELLED.value:
                raise NotRegisteredError("User is not registered for this event")

            held_seat = registration.status == RegistrationStatus.REGISTERED.value
            registration.status = RegistrationStatus.CANCELLED.value
            db.flush()
            promoted = self._promote_from_waitlist(db, event_id) if held_seat else None
            promoted_user_id = promoted.user_id if promoted else None

        logger.info("User %s cancelled registration for event %s", user.id, event_id)
        if promoted_user_id is not None:
            logger.info("User %s promoted from waitlist for event %s", promoted_user_id, event_id)
            safe_send(
                self.notifier,
                [promoted_user_id],
                NotificationKind.REGISTRATION_CONFIRMED,
                {"event_id": event_id, "status": RegistrationStatus.REGISTERED.value, "promoted": True},
            )
        return registration

    def find_registration(self, db: Session, event_id: int, user_id: int) -> Optional[EventRegistration]:
        stmt = select(EventRegistration).where(
            EventRegistration.event_id == event_id,
            EventRegistration.user_id == user_id,
        )
        return db.scalars(stmt).first()

    def count_by_status(self, db: Session, event_id: int, status: RegistrationStatus) -> int:
        count = db.scalar(
            select(func.count(EventRegistration.id)).where(
                EventRegistration.event_id == event_id,
                EventRegistration.status == status.value,
            )
        )
        return int(count or 0)

    def get_event_registration_stats(self, db: Session, event_id: int) -> dict:
        event = load_event(db, event_id)
        rows = db.execute(
            select(EventRegistration.status, func.count(EventRegistration.id))
            .where(EventRegistration.event_id == event_id)
            .group_by(EventRegistration.status)
        ).all()
        counts = {status: int(count) for status, count in rows}
        registered = counts.get(RegistrationStatus.REGISTERED.value, 0)
        now = self.clock.now()

        is_full = event.max_attendees is not None and registered >= event.max_attendees
        can_register = (
            event.status == EventStatus.PUBLISHED.value
            and rules.is_registration_open(event, now)
            and not is_full
            and not rules.is_event_in_past(event, now)
        )
        return {
            "event_id": event.id,
            "total_registered": registered,
            "total_waitlisted": counts.get(RegistrationStatus.WAITLISTED.value, 0),
            "total_cancelled": counts.get(RegistrationStatus.CANCELLED.value, 0),
            "max_attendees": event.max_attendees,
            "is_full": is_full,
            "can_register": can_register,
        }

    def get_registration_status(self, db: Session, event_id: int, user_id: int) -> dict:
        load_event(db, event_id)
        registration = self.find_registration(db, event_id, user_id)
        if registration is None or not registration.is_active:
            return {"is_registered": False, "status": None}
        return {"is_registered": True, "status": registration.status}

    def list_event_registrations(self, db: Session, event_id: int, user: User) -> list[EventRegistration]:
        event = load_event(db, event_id)
        if not rules.is_administrator(user.role) and event.created_by != user.id:
            raise PermissionDeniedError("Insufficient permissions to view event registrations")
        stmt = (
            select(EventRegistration)
            .where(EventRegistration.event_id == event_id)
            .order_by(EventRegistration.registration_date.asc(), EventRegistration.id.asc())
        )
        return list(db.scalars(stmt))

    def list_event_attendees(self, db: Session, event_id: int) -> list[EventRegistration]:
        load_event(db, event_id)
        stmt = (
            select(EventRegistration)
            .where(
                EventRegistration.event_id == event_id,
                EventRegistration.status == RegistrationStatus.REGISTERED.value,
            )
            .order_by(EventRegistration.registration_date.asc(), EventRegistration.id.asc())
        )
        return list(db.scalars(stmt))

    def list_user_registrations(self, db: Session, user_id: int) -> list[EventRegistration]:
        stmt = (
            select(EventRegistration)
            .where(
                EventRegistration.user_id == user_id,
                EventRegistration.status.in_(ACTIVE_STATUSES),
            )
            .order_by(EventRegistration.registration_date.desc())
        )
        return list(db.scalars(stmt))

    def _check_open_for(self, event: Event, user: User, now) -> None:
        if event.status != EventStatus.PUBLISHED.value:
            raise InvalidTransitionError("Event is not available for registration")
        if rules.is_event_in_past(event, now):
            raise EventInPastError("Cannot register for past events")
        if not rules.is_registration_open(event, now):
            raise ValidationError("Registration for this event is not open")
        if not rules.category_allowed(user.category, event.allowed_categories):
            allowed = ", ".join(event.allowed_categories or [])
            raise CategoryRestrictedError(
                f"This event is restricted to {allowed} categories. "
                f"Your category ({user.category}) is not allowed to register."
            )

    def _allocate(self, db: Session, event: Event) -> str:
        if event.max_attendees is None:
            return RegistrationStatus.REGISTERED.value
        registered = self.count_by_status(db, event.id, RegistrationStatus.REGISTERED)
        if registered < event.max_attendees:
            return RegistrationStatus.REGISTERED.value
        return RegistrationStatus.WAITLISTED.value

    def _promote_from_waitlist(self, db: Session, event_id: int) -> Optional[EventRegistration]:
        """Move the earliest waitlisted registration into the freed seat."""
        stmt = (
            select(EventRegistration)
            .where(
                EventRegistration.event_id == event_id,
                EventRegistration.status == RegistrationStatus.WAITLISTED.value,
            )
            .order_by(EventRegistration.registration_date.asc(), EventRegistration.id.asc())
            .limit(1)
        )
        waitlisted = db.scalars(stmt).first()
        if waitlisted is None:
            return None
        waitlisted.status = RegistrationStatus.REGISTERED.value
        db.flush()
        return waitlisted
