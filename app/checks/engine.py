"""
SiteCheck Checks - Task Generation Engine

Turns schedules into task proposals across a lookahead horizon.

The engine is pure: it reads a schedule and a snapshot of the tasks already
stored, and returns new proposals plus the rotation cursor to write back.
Duplicate protection is keyed on (schedule id, due day) against that
snapshot; two runs working from stale snapshots at the same time can still
both propose the same day, which the store's uniqueness constraint absorbs.
"""
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .assignment import next_rotation_cursor, resolve_target
from .dates import DayLike, start_of_day, to_day, to_instant
from .errors import CheckSchedulingError, ScheduleConfigError
from .models import CheckTemplate, Schedule, Task, TaskStatus
from .priority import classify_priority
from .recurrence import next_due_date, schedule_start

logger = logging.getLogger("checks.engine")

TaskLike = Union[Task, Mapping[str, Any]]


# ============================================================================
# Idempotence
# ============================================================================

def _task_key(
    task: TaskLike,
    tz: Optional[datetime.tzinfo] = None,
) -> Tuple[Optional[str], Optional[datetime.date]]:
    if isinstance(task, Task):
        schedule_id, due = task.schedule_id, task.due_date
    else:
        schedule_id = task.get("schedule_id", task.get("scheduleId"))
        due = task.get("due_date") or task.get("dueDate") or task.get("dueAt")
    return schedule_id, (to_day(due, tz) if due is not None else None)


def existing_due_dates(
    existing_tasks: Iterable[TaskLike],
    schedule_id: str,
    tz: Optional[datetime.tzinfo] = None,
) -> Set[datetime.date]:
    """
    Due days already materialized for one schedule.

    Aware due timestamps are read as a day in ``tz`` (the site timezone),
    so ``2024-03-31T23:00Z`` counts as 1 April in London.
    """
    days = set()
    for task in existing_tasks:
        sid, day = _task_key(task, tz)
        if sid == schedule_id and day is not None:
            days.add(day)
    return days


def task_already_exists(
    existing_tasks: Iterable[TaskLike],
    schedule_id: str,
    due_date: DayLike,
    tz: Optional[datetime.tzinfo] = None,
) -> bool:
    """True if a task for this schedule already falls on the same calendar day."""
    return to_day(due_date, tz) in existing_due_dates(existing_tasks, schedule_id, tz)


# ============================================================================
# Materializer
# ============================================================================

def validate_schedule(schedule: Schedule) -> None:
    """Raise ScheduleConfigError if the schedule cannot produce dates."""
    schedule_start(schedule)
    if schedule.parsed_frequency is None:
        raise ScheduleConfigError(
            f"Schedule {schedule.id} has unknown frequency {schedule.frequency!r}",
            schedule_id=schedule.id,
            field="frequency",
            details={"value": schedule.frequency},
        )


def build_task(
    schedule: Schedule,
    due_date: datetime.date,
    asset_id: Optional[str],
    now: DayLike,
) -> Task:
    return Task(
        org_id=schedule.org_id,
        site_id=schedule.site_id,
        asset_id=asset_id,
        schedule_id=schedule.id,
        template_id=schedule.template_id,
        due_date=due_date,
        status=TaskStatus.PENDING,
        assignee_id=None,
        priority=classify_priority(due_date, now),
    )


def generate_tasks(
    schedule: Schedule,
    existing_tasks: Iterable[TaskLike],
    lookahead_days: int,
    template: Optional[CheckTemplate],
    now: DayLike,
) -> List[Task]:
    """
    New task proposals for every occurrence due before ``now + lookahead_days``
    that does not already have a task.

    Proposals come back oldest first, with no ids or timestamps; the caller
    stores them and then persists ``next_rotation_cursor(schedule, len(result))``.
    """
    if not schedule.active:
        return []
    if lookahead_days < 0:
        raise ValueError("lookahead_days cannot be negative")
    validate_schedule(schedule)

    now = to_instant(now)
    tz = now.tzinfo
    horizon_end = now + datetime.timedelta(days=lookahead_days)
    existing = list(existing_tasks)

    proposals: List[Task] = []
    due = next_due_date(schedule, now)
    while due is not None and start_of_day(due, tz) < horizon_end:
        if not task_already_exists(existing, schedule.id, due, tz):
            asset_id = resolve_target(schedule, template, len(proposals))
            task = build_task(schedule, due, asset_id, now)
            proposals.append(task)
            existing.append(task)
        # strictly after ``due``, so every occurrence is visited once
        due = next_due_date(schedule, due)

    return proposals


# ============================================================================
# Batch generation
# ============================================================================

@dataclass
class GenerationFailure:
    schedule_id: Optional[str]
    field: Optional[str]
    message: str

    def to_dict(self) -> Dict:
        return {"schedule_id": self.schedule_id, "field": self.field, "error": self.message}


@dataclass
class GenerationReport:
    """Result of generating for many schedules at once."""
    proposals: Dict[str, List[Task]] = field(default_factory=dict)
    rotation_cursors: Dict[str, int] = field(default_factory=dict)
    failures: List[GenerationFailure] = field(default_factory=list)

    @property
    def total_created(self) -> int:
        return sum(len(tasks) for tasks in self.proposals.values())

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict:
        return {
            "ok": self.ok,
            "total_created": self.total_created,
            "created": {sid: len(tasks) for sid, tasks in self.proposals.items()},
            "rotation_cursors": dict(self.rotation_cursors),
            "failures": [f.to_dict() for f in self.failures],
        }


def generate_for_schedules(
    schedules: Iterable[Schedule],
    tasks_by_schedule: Mapping[str, Iterable[TaskLike]],
    templates: Mapping[str, CheckTemplate],
    lookahead_days: int,
    now: DayLike,
) -> GenerationReport:
    """
    Run the materializer over several schedules.

    A schedule that fails validation is logged and recorded in the report;
    the remaining schedules still generate.
    """
    report = GenerationReport()
    for schedule in schedules:
        try:
            proposals = generate_tasks(
                schedule,
                tasks_by_schedule.get(schedule.id, []),
                lookahead_days,
                templates.get(schedule.template_id),
                now,
            )
        except CheckSchedulingError as e:
            logger.error(f"[Checks] Schedule {schedule.id} could not generate tasks: {e}")
            report.failures.append(GenerationFailure(
                schedule_id=e.schedule_id or schedule.id,
                field=e.field,
                message=str(e),
            ))
            continue

        report.proposals[schedule.id] = proposals
        report.rotation_cursors[schedule.id] = next_rotation_cursor(schedule, len(proposals))

    logger.info(
        f"[Checks] Generated {report.total_created} task(s) for "
        f"{len(report.proposals)} schedule(s), {len(report.failures)} failure(s)"
    )
    return report
