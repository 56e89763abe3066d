from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def today(self) -> date:
        ...


class UtcClock:
    """Canonical scan date: the UTC calendar date, independent of the host time zone."""

    def today(self) -> date:
        return datetime.now(timezone.utc).date()


class FixedClock:
    """Clock for tests and backfills; ``advance`` moves it forward by whole days."""

    def __init__(self, current: date):
        self.current = current

    def today(self) -> date:
        return self.current

    def advance(self, days: int = 1) -> date:
        self.current += timedelta(days=days)
        return self.current
