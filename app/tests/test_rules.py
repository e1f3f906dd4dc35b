"""
Test the event validation rules and predicates.
"""
from datetime import date, datetime, time

import pytest

from app.core.errors import ValidationError
from app.models.events import Event
from app.services import rules
from app.tests.helpers import NOW


def make_event(**fields) -> Event:
    data = {
        "starts_at": datetime(2026, 3, 10, 13, 0),
        "registration_opens_at": datetime(2026, 3, 1, 8, 0),
        "registration_closes_at": datetime(2026, 3, 10, 12, 0),
        "created_by": 1,
    }
    data.update(fields)
    return Event(**data)


class TestParsing:
    """Test date and time parsing."""

    def test_parse_date(self):
        assert rules.parse_event_date("2026-03-10") == date(2026, 3, 10)

    @pytest.mark.parametrize("value", ["2026/03/10", "10-03-2026", "2026-3-10", "2026-13-01", "", None])
    def test_parse_bad_date(self, value):
        with pytest.raises(ValidationError):
            rules.parse_event_date(value)

    @pytest.mark.parametrize("value, expected", [("08:30", time(8, 30)), ("8:05", time(8, 5)), ("23:59", time(23, 59))])
    def test_parse_time(self, value, expected):
        assert rules.parse_event_time(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "12:60", "1230", "noon"])
    def test_parse_bad_time(self, value):
        with pytest.raises(ValidationError):
            rules.parse_event_time(value)

    def test_combine(self):
        assert rules.combine("2026-03-10", "13:00") == datetime(2026, 3, 10, 13, 0)


class TestScheduleRules:
    """Test schedule and capacity validation."""

    def test_valid_schedule(self):
        rules.validate_schedule(datetime(2026, 3, 10, 13), datetime(2026, 3, 1, 8), datetime(2026, 3, 10, 13))

    def test_registration_must_open_before_closing(self):
        at = datetime(2026, 3, 5, 8)
        with pytest.raises(ValidationError):
            rules.validate_schedule(datetime(2026, 3, 10, 13), at, at)

    def test_registration_must_close_by_start(self):
        with pytest.raises(ValidationError):
            rules.validate_schedule(
                datetime(2026, 3, 10, 13), datetime(2026, 3, 1, 8), datetime(2026, 3, 10, 13, 1)
            )

    @pytest.mark.parametrize("value", [None, 1, 500])
    def test_valid_max_attendees(self, value):
        rules.validate_max_attendees(value)

    @pytest.mark.parametrize("value", [0, -3])
    def test_invalid_max_attendees(self, value):
        with pytest.raises(ValidationError):
            rules.validate_max_attendees(value)


class TestCategoryRules:
    """Test category allow-lists."""

    def test_normalize(self):
        assert rules.normalize_categories(["staff", "mahasiswa", "staff"]) == ["mahasiswa", "staff"]

    @pytest.mark.parametrize("value", [None, []])
    def test_normalize_empty(self, value):
        assert rules.normalize_categories(value) is None

    def test_normalize_unknown(self):
        with pytest.raises(ValidationError):
            rules.normalize_categories(["dosen", "guest"])

    @pytest.mark.parametrize(
        "category, allowed, expected",
        [
            ("mahasiswa", None, True),
            ("mahasiswa", [], True),
            ("dosen", ["dosen"], True),
            ("mahasiswa", ["dosen", "staff"], False),
        ],
    )
    def test_category_allowed(self, category, allowed, expected):
        assert rules.category_allowed(category, allowed) is expected


class TestTimePredicates:
    """Test the predicates evaluated against the current time."""

    def test_event_starting_now_is_past(self):
        assert rules.is_event_in_past(make_event(starts_at=NOW), NOW) is True

    def test_future_event(self):
        assert rules.is_event_in_past(make_event(), NOW) is False

    @pytest.mark.parametrize(
        "now, expected",
        [
            (datetime(2026, 3, 1, 7, 59), False),
            (datetime(2026, 3, 1, 8, 0), True),
            (datetime(2026, 3, 10, 11, 59), True),
            (datetime(2026, 3, 10, 12, 0), False),
        ],
    )
    def test_registration_window(self, now, expected):
        assert rules.is_registration_open(make_event(), now) is expected


class TestRoleRules:
    """Test role predicates."""

    @pytest.mark.parametrize(
        "role, reviewer, administrator",
        [
            ("superadmin", True, True),
            ("admin", True, True),
            ("approver", True, False),
            ("user", False, False),
        ],
    )
    def test_roles(self, role, reviewer, administrator):
        assert rules.is_reviewer(role) is reviewer
        assert rules.is_administrator(role) is administrator

    def test_can_modify_event(self):
        event = make_event(created_by=7)
        assert rules.can_modify_event(event, 7, "user")
        assert not rules.can_modify_event(event, 8, "user")
        assert rules.can_modify_event(event, 8, "approver")
