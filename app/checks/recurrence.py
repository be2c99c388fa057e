"""
SiteCheck Checks - Recurrence Calculator

Works out when a schedule next falls due. Occurrences are always
``start_date + k * step`` for a fixed calendar step, and the reference day
itself counts as already covered, so feeding a result back in (plus one day)
yields the following occurrence rather than the same one.
"""
import datetime
import logging
from typing import Optional

from dateutil.relativedelta import relativedelta

from .dates import DayLike, to_day
from .errors import ScheduleConfigError
from .models import Frequency, Schedule

logger = logging.getLogger("checks.recurrence")

# Fixed-length steps in days
_DAY_STEPS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
}

# Calendar steps in months
_MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.ANNUAL: 12,
}


def schedule_start(schedule: Schedule) -> datetime.date:
    """The schedule's first occurrence, or ScheduleConfigError if it has none."""
    if schedule.start_date is None:
        raise ScheduleConfigError(
            f"Schedule {schedule.id} has no start date",
            schedule_id=schedule.id,
            field="start_date",
        )
    try:
        return to_day(schedule.start_date)
    except (TypeError, ValueError) as e:
        raise ScheduleConfigError(
            f"Schedule {schedule.id} has an unreadable start date: {e}",
            schedule_id=schedule.id,
            field="start_date",
            details={"value": str(schedule.start_date)},
        ) from e


def occurrence(start: datetime.date, frequency: Frequency, k: int) -> datetime.date:
    """The k-th occurrence after ``start`` (k=0 is the start itself)."""
    if frequency in _DAY_STEPS:
        return start + datetime.timedelta(days=k * _DAY_STEPS[frequency])
    # Anchored on the start date so the 31st clamps in short months
    # and comes back afterwards.
    return start + relativedelta(months=k * _MONTH_STEPS[frequency])


def next_due_date(schedule: Schedule, reference: DayLike) -> Optional[datetime.date]:
    """
    Next occurrence strictly after the reference's calendar day.

    Returns None for inactive schedules and unknown frequencies. A start date
    later than the reference day is returned as-is.
    """
    if not schedule.active:
        return None

    start = schedule_start(schedule)
    frequency = schedule.parsed_frequency
    if frequency is None:
        logger.debug(f"[Checks] Schedule {schedule.id} has unknown frequency {schedule.frequency!r}")
        return None

    ref_day = to_day(reference)
    if start > ref_day:
        return start

    if frequency in _DAY_STEPS:
        elapsed = (ref_day - start).days
        return occurrence(start, frequency, elapsed // _DAY_STEPS[frequency] + 1)

    step = _MONTH_STEPS[frequency]
    elapsed_months = (ref_day.year - start.year) * 12 + (ref_day.month - start.month)
    k = elapsed_months // step
    candidate = occurrence(start, frequency, k)
    # k lands in or before the reference month; at most one more step is needed
    while candidate <= ref_day:
        k += 1
        candidate = occurrence(start, frequency, k)
    return candidate
