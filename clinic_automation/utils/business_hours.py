"""Rule time windows: active hours and pause windows.

Active hours are evaluated in the window's own timezone (falling back
to the scheduler timezone). Minute-level precision, bounds inclusive.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from clinic_automation.schemas.automation import WEEKDAYS, ActiveHours, PauseWindow
from clinic_automation.utils.datetime_utils import ensure_utc


def _minute_of_day(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def is_within_active_hours(window: ActiveHours | None, now: datetime, default_timezone: str) -> bool:
    """Check day-of-week AND minute-of-day against the window.

    An empty day list allows every day. A start later than end is an
    overnight window (e.g. 22:00-06:00).
    """
    if window is None:
        return True
    local = ensure_utc(now).astimezone(ZoneInfo(window.timezone or default_timezone))

    if window.days and WEEKDAYS[local.weekday()] not in window.days:
        return False

    minute = local.hour * 60 + local.minute
    start = _minute_of_day(window.start)
    end = _minute_of_day(window.end)
    if start <= end:
        return start <= minute <= end
    return minute >= start or minute <= end


def is_paused(pause: PauseWindow | None, now: datetime) -> bool:
    """True while from <= now <= to."""
    if pause is None:
        return False
    now_utc = ensure_utc(now)
    return ensure_utc(pause.starts_at) <= now_utc <= ensure_utc(pause.ends_at)
