"""Work-hours gate: weekday/hour window, holiday calendar, poll jitter."""
import logging
import random
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from restock.config import config

logger = logging.getLogger(__name__)


class WorkScheduleGate:
    """Decides when the monitor loop may check stock and place orders."""

    def __init__(
        self,
        timezone: str = config.TIMEZONE,
        weekdays: Iterable[int] = config.ACTIVE_WEEKDAYS,
        start_hour: int = config.ACTIVE_START_HOUR,
        end_hour: int = config.ACTIVE_END_HOUR,
        holidays: Iterable[str | date] = config.HOLIDAYS,
        poll_min_seconds: float = config.POLL_MIN_SECONDS,
        poll_max_seconds: float = config.POLL_MAX_SECONDS,
        idle_sleep_seconds: float = config.IDLE_SLEEP_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        self.tz = ZoneInfo(timezone)
        self.weekdays = frozenset(weekdays)
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.holidays = frozenset(
            d if isinstance(d, date) else date.fromisoformat(d) for d in holidays
        )
        self.poll_min_seconds = poll_min_seconds
        self.poll_max_seconds = poll_max_seconds
        self.idle_sleep_seconds = idle_sleep_seconds
        self._rng = rng or random.Random()

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def local(self, moment: datetime) -> datetime:
        """Convert to supplier-local time; naive datetimes are taken as already local."""
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self.tz)
        return moment.astimezone(self.tz)

    def is_holiday(self, day: date) -> bool:
        return day in self.holidays

    def is_work_day(self, day: date) -> bool:
        return day.weekday() in self.weekdays and not self.is_holiday(day)

    def is_active_now(self, now: Optional[datetime] = None) -> bool:
        """Inside the weekday/hour window and not on a holiday."""
        local = self.local(now or self.now())
        if not self.is_work_day(local.date()):
            return False
        return self.start_hour <= local.hour < self.end_hour

    def next_active_start(self, now: Optional[datetime] = None) -> datetime:
        """Start of the next active window; ``now`` itself when already active."""
        local = self.local(now or self.now())
        if self.is_active_now(local):
            return local

        day = local.date()
        if local.hour >= self.start_hour:
            day += timedelta(days=1)
        # A year covers any sane weekday set plus holidays
        for _ in range(366):
            if self.is_work_day(day):
                return datetime.combine(day, time(hour=self.start_hour), tzinfo=self.tz)
            day += timedelta(days=1)
        raise ValueError("No active day within a year; check ACTIVE_WEEKDAYS and HOLIDAYS")

    def next_business_day(self, now: Optional[datetime] = None) -> date:
        """Next Monday-Friday after today (delivery date)."""
        day = self.local(now or self.now()).date() + timedelta(days=1)
        while day.weekday() >= 5:
            day += timedelta(days=1)
        return day

    def poll_interval(self) -> float:
        """Randomized pause between product checks."""
        return self._rng.uniform(self.poll_min_seconds, self.poll_max_seconds)

    def idle_interval(self, now: Optional[datetime] = None) -> float:
        """Sleep while inactive, capped at the time left until the next active start."""
        local = self.local(now or self.now())
        until_start = (self.next_active_start(local) - local).total_seconds()
        return max(1.0, min(self.idle_sleep_seconds, until_start))
