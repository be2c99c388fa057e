"""
SiteCheck Checks - Priority & Due Buckets

Priority is a pure function of how far away the due date is. Callers that
want fresh values re-run it at read time; the engine stamps it once at
creation.
"""
import datetime
import math
from typing import Dict, Iterable, List

from .dates import DayLike, start_of_day, to_instant
from .models import Priority, Task, TaskStatus

_DAY_SECONDS = 24 * 60 * 60


def days_until_due(due_date: datetime.date, now: DayLike) -> int:
    now = to_instant(now)
    due = start_of_day(due_date, now.tzinfo)
    return math.ceil((due - now).total_seconds() / _DAY_SECONDS)


def classify_priority(due_date: datetime.date, now: DayLike) -> Priority:
    days = days_until_due(due_date, now)
    if days < 0:
        return Priority.URGENT  # overdue
    if days == 0:
        return Priority.URGENT  # due today
    if days <= 1:
        return Priority.HIGH
    if days <= 3:
        return Priority.MEDIUM
    return Priority.LOW


def is_due_today(task: Task, now: DayLike) -> bool:
    if task.status is not TaskStatus.PENDING or task.due_date is None:
        return False
    return task.due_date == to_instant(now).date()


def is_overdue(task: Task, now: DayLike) -> bool:
    if task.status is not TaskStatus.PENDING or task.due_date is None:
        return False
    return task.due_date < to_instant(now).date()


def task_bucket(task: Task, now: DayLike) -> str:
    if task.status is TaskStatus.COMPLETED:
        return "completed"
    if is_overdue(task, now):
        return "overdue"
    if is_due_today(task, now):
        return "due_today"
    return "upcoming"


def bucket_tasks(tasks: Iterable[Task], now: DayLike) -> Dict[str, List[Task]]:
    """Split tasks into due_today / overdue / upcoming / completed."""
    buckets: Dict[str, List[Task]] = {
        "due_today": [],
        "overdue": [],
        "upcoming": [],
        "completed": [],
    }
    for task in tasks:
        buckets[task_bucket(task, now)].append(task)
    return buckets
