"""
SiteCheck - Recurrence Calculator Tests
=======================================
"""

import datetime
import time

import pytest
from dateutil.relativedelta import relativedelta
from zoneinfo import ZoneInfo

from app.checks.errors import ScheduleConfigError
from app.checks.recurrence import next_due_date
from tests.conftest import make_schedule, at

D = datetime.date


# ============================================================================
# BASIC RULES
# ============================================================================

class TestNextDueDate:

    def test_inactive_schedule_has_no_next_date(self):
        assert next_due_date(make_schedule(active=False), at(2024, 3, 15)) is None

    def test_future_start_is_first_occurrence(self):
        schedule = make_schedule(start_date=D(2024, 5, 10), frequency="weekly")
        assert next_due_date(schedule, at(2024, 5, 1)) == D(2024, 5, 10)

    @pytest.mark.parametrize("frequency,expected", [
        ("daily", D(2024, 1, 2)),
        ("weekly", D(2024, 1, 8)),
        ("monthly", D(2024, 2, 1)),
        ("quarterly", D(2024, 4, 1)),
        ("annual", D(2025, 1, 1)),
    ])
    def test_reference_on_start_day_is_already_covered(self, frequency, expected):
        schedule = make_schedule(frequency=frequency, start_date=D(2024, 1, 1))
        assert next_due_date(schedule, at(2024, 1, 1)) == expected

    def test_time_of_day_is_ignored(self):
        schedule = make_schedule(frequency="daily")
        assert next_due_date(schedule, at(2024, 3, 15, 23, 59)) == D(2024, 3, 16)
        assert next_due_date(schedule, at(2024, 3, 15, 0, 1)) == D(2024, 3, 16)

    def test_accepts_plain_dates_and_iso_strings(self):
        schedule = make_schedule(frequency="weekly")
        assert next_due_date(schedule, D(2024, 1, 3)) == D(2024, 1, 8)
        assert next_due_date(schedule, "2024-01-03") == D(2024, 1, 8)
        assert next_due_date(schedule, "2024-01-03 18:30:00") == D(2024, 1, 8)

    def test_aware_reference_uses_its_own_calendar_day(self):
        schedule = make_schedule(frequency="daily")
        late_evening = datetime.datetime(2024, 6, 30, 23, 30, tzinfo=ZoneInfo("Europe/London"))
        assert next_due_date(schedule, late_evening) == D(2024, 7, 1)

    def test_unknown_frequency_returns_none(self):
        schedule = make_schedule(frequency="fortnightly")
        assert next_due_date(schedule, at(2024, 3, 15)) is None

    def test_missing_start_date_fails_fast(self):
        schedule = make_schedule(start_date=None)
        with pytest.raises(ScheduleConfigError) as exc:
            next_due_date(schedule, at(2024, 3, 15))
        assert exc.value.field == "start_date"
        assert exc.value.schedule_id == "sched-1"


# ============================================================================
# CALENDAR EDGE CASES
# ============================================================================

class TestMonthSteps:

    def test_month_end_start_clamps_without_drifting(self):
        schedule = make_schedule(start_date=D(2024, 1, 31))
        assert next_due_date(schedule, at(2024, 1, 31)) == D(2024, 2, 29)
        assert next_due_date(schedule, at(2024, 3, 1)) == D(2024, 3, 31)
        assert next_due_date(schedule, at(2024, 4, 1)) == D(2024, 4, 30)
        assert next_due_date(schedule, at(2024, 5, 1)) == D(2024, 5, 31)

    def test_month_end_chain_visits_every_month_once(self):
        schedule = make_schedule(start_date=D(2024, 1, 31))
        due = next_due_date(schedule, at(2024, 1, 31))
        months = []
        for _ in range(12):
            months.append((due.year, due.month))
            due = next_due_date(schedule, due + datetime.timedelta(days=1))
        expected = [(2024, m) for m in range(2, 13)] + [(2025, 1)]
        assert months == expected

    def test_quarterly_skips_to_following_quarter(self):
        schedule = make_schedule(frequency="quarterly", start_date=D(2024, 1, 15))
        assert next_due_date(schedule, at(2024, 5, 20)) == D(2024, 7, 15)
        assert next_due_date(schedule, at(2024, 4, 14)) == D(2024, 4, 15)
        assert next_due_date(schedule, at(2024, 4, 15)) == D(2024, 7, 15)

    def test_leap_day_annual_schedule(self):
        schedule = make_schedule(frequency="annual", start_date=D(2024, 2, 29))
        assert next_due_date(schedule, at(2024, 2, 29)) == D(2025, 2, 28)
        assert next_due_date(schedule, at(2025, 3, 1)) == D(2026, 2, 28)
        assert next_due_date(schedule, at(2027, 3, 1)) == D(2028, 2, 29)


# ============================================================================
# PROPERTIES
# ============================================================================

_STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "annual": relativedelta(years=1),
}


def _walk(start, frequency, reference):
    """Occurrence-by-occurrence walk from the start date."""
    if start > reference:
        return start
    k = 0
    while True:
        k += 1
        candidate = start + _STEPS[frequency] * k
        if candidate > reference:
            return candidate


class TestProperties:

    @pytest.mark.parametrize("frequency", list(_STEPS))
    def test_closed_form_matches_walk(self, frequency):
        starts = [D(2023, 1, 31), D(2023, 2, 28), D(2023, 8, 30), D(2024, 2, 29), D(2024, 6, 15)]
        references = [D(2024, 1, 1) + datetime.timedelta(days=n) for n in range(0, 420, 11)]
        for start in starts:
            schedule = make_schedule(frequency=frequency, start_date=start)
            for ref in references:
                assert next_due_date(schedule, ref) == _walk(start, frequency, ref), (start, ref)

    @pytest.mark.parametrize("frequency", list(_STEPS))
    def test_chained_results_strictly_increase(self, frequency):
        schedule = make_schedule(frequency=frequency, start_date=D(2023, 10, 31))
        previous = None
        due = next_due_date(schedule, at(2024, 1, 1))
        for _ in range(25):
            assert previous is None or due > previous
            previous = due
            due = next_due_date(schedule, due + datetime.timedelta(days=1))

    def test_ancient_start_date_is_computed_directly(self):
        schedule = make_schedule(frequency="daily", start_date=D(1900, 1, 1))
        started = time.perf_counter()
        for _ in range(200):
            assert next_due_date(schedule, at(2024, 3, 15)) == D(2024, 3, 16)
        assert time.perf_counter() - started < 1.0
