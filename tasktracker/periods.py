"""
Calendar period arithmetic.

Every recurring task lives in a window that starts on its "period start"
and ends the day before the next one. The window is anchored on the task's
reset day:

  - daily:    the window is today
  - weekly:   starts on the latest ``reset_day`` weekday (0=Sunday..6=Saturday)
  - monthly:  starts on day ``reset_day`` of this or the previous month
  - one-time: a single window that began at ``date.min``

Monthly anchors beyond the length of a month (29, 30, 31) are clamped to
that month's last day, so ``reset_day=31`` starts February's window on the
28th (29th in leap years).
"""
from __future__ import annotations

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from tasktracker.models import DEFAULT_RESET_DAY, Frequency


def sunday_weekday(day: date) -> int:
    """Weekday number with Sunday as 0 and Saturday as 6."""
    return day.isoweekday() % 7


def effective_reset_day(frequency, reset_day: int | None) -> int | None:
    frequency = Frequency(frequency)
    if reset_day is None:
        return DEFAULT_RESET_DAY.get(frequency)
    return reset_day


def _monthly_anchor(day: date, reset_day: int, months: int = 0) -> date:
    # relativedelta(day=N) clamps N to the length of the target month
    return day + relativedelta(months=months, day=reset_day)


def period_start(today: date, frequency, reset_day: int | None = None) -> date:
    frequency = Frequency(frequency)
    reset_day = effective_reset_day(frequency, reset_day)

    if frequency is Frequency.DAILY:
        return today
    if frequency is Frequency.WEEKLY:
        days_since_reset = (sunday_weekday(today) - reset_day + 7) % 7
        return today - timedelta(days=days_since_reset)
    if frequency is Frequency.MONTHLY:
        anchor = _monthly_anchor(today, reset_day)
        if today >= anchor:
            return anchor
        return _monthly_anchor(today, reset_day, months=-1)
    return date.min


def next_period_start(today: date, frequency, reset_day: int | None = None) -> date | None:
    """First day of the following period, or None for one-time tasks."""
    frequency = Frequency(frequency)
    reset_day = effective_reset_day(frequency, reset_day)
    start = period_start(today, frequency, reset_day)

    if frequency is Frequency.DAILY:
        return start + timedelta(days=1)
    if frequency is Frequency.WEEKLY:
        return start + timedelta(days=7)
    if frequency is Frequency.MONTHLY:
        return _monthly_anchor(start, reset_day, months=1)
    return None
