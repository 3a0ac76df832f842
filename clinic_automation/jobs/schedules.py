"""Job schedules (cron and fixed interval) and the clock they run against."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from clinic_automation.utils.datetime_utils import ensure_utc, utcnow

# Upper bound for next-run search (covers "0 0 29 2 *")
_MAX_SEARCH = timedelta(days=366 * 5)


class Clock(Protocol):
    def now(self) -> datetime: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def now(self) -> datetime:
        return utcnow()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class Schedule(Protocol):
    def next_after(self, moment: datetime) -> datetime: ...

    def describe(self) -> str: ...


@dataclass(frozen=True)
class IntervalSchedule:
    seconds: float

    def __post_init__(self) -> None:
        if self.seconds <= 0:
            raise ValueError("Interval must be positive")

    def next_after(self, moment: datetime) -> datetime:
        return ensure_utc(moment) + timedelta(seconds=self.seconds)

    def describe(self) -> str:
        return f"every {self.seconds:g}s"


def _parse_field(field: str, low: int, high: int) -> frozenset[int]:
    """Parse one cron field: *, n, a-b, */s, a-b/s and comma lists."""
    values: set[int] = set()
    for part in field.split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            step = int(step_text)
            if step <= 0:
                raise ValueError(f"Invalid step in cron field '{field}'")
        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
        else:
            start = int(part)
            end = high if step > 1 else start
        if start < low or end > high or start > end:
            raise ValueError(f"Cron field '{field}' out of range {low}-{high}")
        values.update(range(start, end + 1, step))
    return frozenset(values)


class CronSchedule:
    """Five-field cron (minute hour day-of-month month day-of-week).

    Evaluated in `timezone`. Day-of-week is 0-7 with 0 and 7 = Sunday.
    When both day fields are restricted, either may match (classic cron).
    """

    def __init__(self, expression: str, timezone: str = "UTC") -> None:
        parts = expression.split()
        if len(parts) != 5:
            raise ValueError(f"Cron expression must have 5 fields: '{expression}'")
        self.expression = expression
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)
        minute, hour, dom, month, dow = parts
        self.minutes = _parse_field(minute, 0, 59)
        self.hours = _parse_field(hour, 0, 23)
        self.days = _parse_field(dom, 1, 31)
        self.months = _parse_field(month, 1, 12)
        self.weekdays = frozenset(d % 7 for d in _parse_field(dow, 0, 7))
        self._dom_any = dom == "*"
        self._dow_any = dow == "*"

    def _day_matches(self, local: datetime) -> bool:
        cron_weekday = (local.weekday() + 1) % 7  # Python Monday=0 -> cron Monday=1
        dom_ok = local.day in self.days
        dow_ok = cron_weekday in self.weekdays
        if self._dom_any or self._dow_any:
            return dom_ok and dow_ok
        return dom_ok or dow_ok

    def matches(self, moment: datetime) -> bool:
        local = ensure_utc(moment).astimezone(self._tz)
        return (
            local.minute in self.minutes
            and local.hour in self.hours
            and local.month in self.months
            and self._day_matches(local)
        )

    def next_after(self, moment: datetime) -> datetime:
        """First matching minute strictly after `moment`."""
        start = ensure_utc(moment)
        local = start.astimezone(self._tz).replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = start + _MAX_SEARCH
        while local <= limit:
            if local.month not in self.months or not self._day_matches(local):
                local = (local + timedelta(days=1)).replace(hour=0, minute=0)
                continue
            if local.hour not in self.hours:
                local = (local + timedelta(hours=1)).replace(minute=0)
                continue
            if local.minute not in self.minutes:
                local += timedelta(minutes=1)
                continue
            return ensure_utc(local)
        raise ValueError(f"Cron expression '{self.expression}' never fires")

    def describe(self) -> str:
        return f"cron '{self.expression}' ({self.timezone})"
