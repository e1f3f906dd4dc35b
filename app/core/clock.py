from datetime import datetime, timedelta
from zoneinfo import ZoneInfo


class Clock:
    """Wall-clock time on campus, as naive datetimes comparable with stored event times."""

    def __init__(self, timezone: str = "UTC"):
        self._zone = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._zone).replace(tzinfo=None, microsecond=0)


class FixedClock(Clock):
    """Clock frozen at a given instant. Used by tests and one-off scripts."""

    def __init__(self, at: datetime):
        self._at = at

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = at

    def advance(self, **delta) -> datetime:
        self._at = self._at + timedelta(**delta)
        return self._at
