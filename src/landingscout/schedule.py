"""Cron-style schedule parsing backed by APScheduler's CronTrigger.

Five-field expressions (``minute hour day month day_of_week``) and
six-field expressions with a leading seconds field are accepted.

Numeric day-of-week values follow crontab (0 or 7 is Sunday). APScheduler
counts from Monday, so numbers are rewritten as day names before the
trigger is built.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.triggers.cron import CronTrigger

from landingscout.exceptions import InvalidScheduleError
from landingscout.models import utcnow

# Indexed by crontab day number, 7 wraps to Sunday
CRONTAB_WEEKDAYS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun"]

_NUMERIC_WEEKDAY = re.compile(r"^(\*|\d+)(?:-(\d+))?(?:/(\d+))?$")


def _crontab_weekdays(field: str) -> str:
    """Rewrite a crontab day-of-week field using day names.

    Name-based parts (``mon-fri``) pass through untouched.

    Raises:
        ValueError: If a number is out of range or a range runs backwards
    """
    names = []
    for part in field.split(","):
        match = _NUMERIC_WEEKDAY.match(part)
        if match is None:
            names.append(part)
            continue

        start, end, step = match.groups()
        if start == "*":
            if step is None:
                return "*"
            if end is not None:
                raise ValueError(f"invalid day of week: {part!r}")
            first, last = 0, 6
        else:
            first = int(start)
            last = int(end) if end is not None else (6 if step else first)
        if not 0 <= first <= 7 or not 0 <= last <= 7:
            raise ValueError(f"day of week out of range: {part!r}")
        if first > last:
            raise ValueError(f"day of week range runs backwards: {part!r}")

        for day in range(first, last + 1, int(step or 1)):
            name = CRONTAB_WEEKDAYS[day]
            if name not in names:
                names.append(name)

    return ",".join(names)


def parse_schedule(expression: str) -> CronTrigger:
    """Parse a cron expression into a recurring trigger.

    Raises:
        InvalidScheduleError: If the expression is empty or malformed
    """
    if not expression or not expression.strip():
        raise InvalidScheduleError(expression or "", "schedule is empty")

    fields = expression.split()
    if len(fields) == 5:
        fields = ["0"] + fields
    if len(fields) != 6:
        raise InvalidScheduleError(
            expression, f"expected 5 or 6 fields, got {len(fields)}"
        )

    second, minute, hour, day, month, day_of_week = fields
    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=_crontab_weekdays(day_of_week),
            timezone=timezone.utc,
        )
    except ValueError as e:
        raise InvalidScheduleError(expression, str(e)) from e


def validate_schedule(expression: str) -> None:
    """Raise InvalidScheduleError unless the expression parses."""
    parse_schedule(expression)


def next_run_time(expression: str, after: Optional[datetime] = None) -> datetime:
    """Next fire time of a schedule, strictly later than ``after``.

    Args:
        expression: Cron expression
        after: Reference point (defaults to now, UTC)

    Returns:
        Timezone-aware UTC datetime
    """
    trigger = parse_schedule(expression)
    reference = after or utcnow()
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)

    # CronTrigger may return the reference itself when it falls on a fire time
    fire_time = trigger.get_next_fire_time(None, reference + timedelta(microseconds=1))
    if fire_time is None:
        raise InvalidScheduleError(expression, "schedule never fires again")
    return fire_time.astimezone(timezone.utc)
