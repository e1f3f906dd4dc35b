"""
Test creating, editing, listing and deleting events.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.errors import (
    EventInPastError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models.events import Event, EventStatus
from app.models.history import EventApprovalHistory
from app.models.locations import Location
from app.models.registrations import EventRegistration
from app.models.users import UserRole
from app.schemas.events import EventCreate, EventUpdate


def event_payload(location_id: int, **overrides) -> EventCreate:
    data = {
        "title": "Research Colloquium",
        "description": "Monthly faculty colloquium",
        "event_date": "2026-03-10",
        "event_time": "13:00",
        "registration_start_date": "2026-03-01",
        "registration_start_time": "08:00",
        "registration_end_date": "2026-03-10",
        "registration_end_time": "12:00",
        "location_id": location_id,
        "max_attendees": 50,
    }
    data.update(overrides)
    return EventCreate(**data)


class TestCreateEvent:
    """Test event creation."""

    def test_create_draft(self, db_session: Session, services, location, make_user):
        user = make_user()

        event = services.events.create_event(db_session, event_payload(location.id), user)

        assert event.id is not None
        assert event.status == EventStatus.DRAFT.value
        assert event.starts_at == datetime(2026, 3, 10, 13, 0)
        assert event.registration_opens_at == datetime(2026, 3, 1, 8, 0)
        assert event.registration_closes_at == datetime(2026, 3, 10, 12, 0)
        assert event.created_by == user.id
        assert services.history.get_event_history(db_session, event.id) == []

    def test_regular_user_cannot_create_published(self, db_session: Session, services, location, make_user):
        with pytest.raises(PermissionDeniedError):
            services.events.create_event(db_session, event_payload(location.id, status="published"), make_user())

    def test_reviewer_creates_published(self, db_session: Session, services, location, make_user):
        admin = make_user(role=UserRole.ADMIN)

        event = services.events.create_event(db_session, event_payload(location.id, status="published"), admin)

        assert event.status == EventStatus.PUBLISHED.value
        assert event.approved_by == admin.id
        history = services.history.get_event_history(db_session, event.id)
        assert [(h.action, h.status_before, h.status_after) for h in history] == [
            ("published", "draft", "published")
        ]

    def test_cannot_create_published_in_past(self, db_session: Session, services, location, make_user):
        payload = event_payload(
            location.id,
            status="published",
            event_date="2026-03-01",
            registration_start_date="2026-02-20",
            registration_end_date="2026-03-01",
        )

        with pytest.raises(EventInPastError):
            services.events.create_event(db_session, payload, make_user(role=UserRole.APPROVER))

    @pytest.mark.parametrize("status", ["pending_approval", "cancelled", "completed"])
    def test_cannot_create_with_other_status(self, db_session: Session, services, location, make_user, status):
        with pytest.raises(ValidationError):
            services.events.create_event(
                db_session, event_payload(location.id, status=status), make_user(role=UserRole.ADMIN)
            )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"event_date": "10-03-2026"},
            {"event_date": "2026-02-30"},
            {"event_time": "25:00"},
            {"registration_start_time": "8am"},
            # registration opens after it closes
            {"registration_start_date": "2026-03-10", "registration_start_time": "12:30"},
            # registration closes after the event starts
            {"registration_end_time": "13:30"},
            {"max_attendees": 0},
            {"allowed_categories": ["alumni"]},
        ],
    )
    def test_invalid_payloads(self, db_session: Session, services, location, make_user, overrides):
        with pytest.raises(ValidationError):
            services.events.create_event(db_session, event_payload(location.id, **overrides), make_user())
        assert db_session.scalar(select(func.count(Event.id))) == 0

    def test_registration_may_close_when_event_starts(self, db_session: Session, services, location, make_user):
        payload = event_payload(location.id, registration_end_time="13:00")
        event = services.events.create_event(db_session, payload, make_user())
        assert event.registration_closes_at == event.starts_at

    def test_categories_are_normalized(self, db_session: Session, services, location, make_user):
        payload = event_payload(location.id, allowed_categories=["staff", "dosen", "staff"])
        event = services.events.create_event(db_session, payload, make_user())
        assert event.allowed_categories == ["dosen", "staff"]

    def test_empty_categories_mean_unrestricted(self, db_session: Session, services, location, make_user):
        event = services.events.create_event(db_session, event_payload(location.id, allowed_categories=[]), make_user())
        assert event.allowed_categories is None

    def test_unknown_location(self, db_session: Session, services, location, make_user):
        with pytest.raises(NotFoundError):
            services.events.create_event(db_session, event_payload(location.id + 100), make_user())

    def test_inactive_location(self, db_session: Session, services, make_user):
        closed = Location(name="Old Hall", is_active=False)
        db_session.add(closed)
        db_session.commit()

        with pytest.raises(ValidationError):
            services.events.create_event(db_session, event_payload(closed.id), make_user())


class TestUpdateEvent:
    """Test editing events."""

    def test_update_title_and_capacity(self, db_session: Session, services, make_event, make_user):
        creator = make_user()
        event = make_event(creator=creator, max_attendees=10)

        result = services.events.update_event(
            db_session, event.id, EventUpdate(title="  New Title ", max_attendees=20), creator
        )

        assert result.title == "New Title"
        assert result.max_attendees == 20

    def test_update_by_stranger(self, db_session: Session, services, make_event, make_user):
        event = make_event()

        with pytest.raises(PermissionDeniedError):
            services.events.update_event(db_session, event.id, EventUpdate(title="Hijacked"), make_user())

    def test_reviewer_may_update_any_event(self, db_session: Session, services, make_event, make_user):
        event = make_event()
        approver = make_user(role=UserRole.APPROVER)

        result = services.events.update_event(db_session, event.id, EventUpdate(description="Edited"), approver)

        assert result.description == "Edited"

    def test_update_cancelled_event(self, db_session: Session, services, make_event, make_user):
        creator = make_user()
        event = make_event(creator=creator, status=EventStatus.CANCELLED)

        with pytest.raises(InvalidTransitionError):
            services.events.update_event(db_session, event.id, EventUpdate(title="Back again"), creator)

    def test_capacity_below_registered(self, db_session: Session, services, make_event, make_user):
        creator = make_user()
        event = make_event(creator=creator, max_attendees=5)
        for _ in range(3):
            services.registrations.register_for_event(db_session, event.id, make_user())

        with pytest.raises(ValidationError):
            services.events.update_event(db_session, event.id, EventUpdate(max_attendees=2), creator)

        db_session.refresh(event)
        assert event.max_attendees == 5

    def test_update_schedule_keeps_other_parts(self, db_session: Session, services, make_event, make_user):
        creator = make_user()
        event = make_event(creator=creator)
        original_start = event.starts_at

        result = services.events.update_event(db_session, event.id, EventUpdate(event_time="23:30"), creator)

        assert result.starts_at.date() == original_start.date()
        assert result.starts_at.strftime("%H:%M") == "23:30"

    def test_update_breaking_schedule(self, db_session: Session, services, make_event, make_user):
        creator = make_user()
        event = make_event(creator=creator)

        with pytest.raises(ValidationError):
            services.events.update_event(
                db_session, event.id, EventUpdate(registration_end_date="2026-03-20"), creator
            )

    def test_move_published_event_into_past(self, db_session: Session, services, make_event, make_user):
        creator = make_user()
        event = make_event(creator=creator)
        update = EventUpdate(
            event_date="2026-03-01",
            event_time="08:00",
            registration_start_date="2026-02-27",
            registration_start_time="08:00",
            registration_end_date="2026-02-28",
            registration_end_time="08:00",
        )

        with pytest.raises(EventInPastError):
            services.events.update_event(db_session, event.id, update, creator)


class TestDeleteEvent:
    """Test deleting events."""

    def test_delete_removes_dependents(self, db_session: Session, services, make_event, make_user):
        creator = make_user()
        event = make_event(creator=creator, status=EventStatus.DRAFT)
        services.approvals.submit_for_approval(db_session, event.id, creator)
        services.approvals.approve_event(db_session, event.id, make_user(role=UserRole.APPROVER))
        services.registrations.register_for_event(db_session, event.id, make_user())
        event_id = event.id

        services.events.delete_event(db_session, event_id, creator)

        assert db_session.get(Event, event_id) is None
        assert db_session.scalar(
            select(func.count(EventRegistration.id)).where(EventRegistration.event_id == event_id)
        ) == 0
        assert db_session.scalar(
            select(func.count(EventApprovalHistory.id)).where(EventApprovalHistory.event_id == event_id)
        ) == 0

    def test_delete_by_stranger(self, db_session: Session, services, make_event, make_user):
        event = make_event()

        with pytest.raises(PermissionDeniedError):
            services.events.delete_event(db_session, event.id, make_user())

    def test_delete_missing(self, db_session: Session, services, make_user):
        with pytest.raises(NotFoundError):
            services.events.delete_event(db_session, 424242, make_user())


class TestListEvents:
    """Test event listings."""

    def test_paginate_by_start_time(self, db_session: Session, services, make_event):
        for day in (3, 1, 2):
            make_event(starts_in=timedelta(days=day), title=f"Day {day}")

        first_page, total = services.events.list_events(db_session, page=1, limit=2)
        second_page, _ = services.events.list_events(db_session, page=2, limit=2)

        assert total == 3
        assert [e.title for e in first_page] == ["Day 1", "Day 2"]
        assert [e.title for e in second_page] == ["Day 3"]

    def test_filter_by_status(self, db_session: Session, services, make_event):
        make_event(status=EventStatus.DRAFT)
        make_event(status=EventStatus.PUBLISHED)

        events, total = services.events.list_events(db_session, status="draft")

        assert total == 1
        assert events[0].status == "draft"

    def test_user_events(self, db_session: Session, services, make_event, make_user):
        creator = make_user()
        mine = make_event(creator=creator)
        make_event()

        assert [e.id for e in services.events.list_user_events(db_session, creator.id)] == [mine.id]

    def test_pending_queue_for_reviewers_only(self, db_session: Session, services, make_event, make_user):
        pending = make_event(status=EventStatus.PENDING_APPROVAL)
        make_event(status=EventStatus.DRAFT)

        with pytest.raises(PermissionDeniedError):
            services.events.list_pending_approval(db_session, make_user())

        queue = services.events.list_pending_approval(db_session, make_user(role=UserRole.APPROVER))
        assert [e.id for e in queue] == [pending.id]
