"""
SiteCheck Checks - Task Claims

A member of staff claims a pending task so nobody else starts the same
inspection. Claims lapse after a few hours and the task goes back to the pool.
"""
import datetime
from dataclasses import replace
from typing import Iterable, List

from .dates import DayLike, to_instant
from .errors import TaskClaimError
from .models import Task, TaskStatus

DEFAULT_CLAIM_EXPIRY_HOURS = 4


def is_claim_expired(task: Task, now: DayLike, expiry_hours: int = DEFAULT_CLAIM_EXPIRY_HOURS) -> bool:
    if task.claimed_at is None or task.status is not TaskStatus.PENDING:
        return False
    now = to_instant(now)
    claimed_at = task.claimed_at
    if claimed_at.tzinfo is None and now.tzinfo is not None:
        claimed_at = claimed_at.replace(tzinfo=now.tzinfo)
    elif claimed_at.tzinfo is not None and now.tzinfo is None:
        now = now.replace(tzinfo=claimed_at.tzinfo)
    return now - claimed_at >= datetime.timedelta(hours=expiry_hours)


def expired_claims(
    tasks: Iterable[Task],
    now: DayLike,
    expiry_hours: int = DEFAULT_CLAIM_EXPIRY_HOURS,
) -> List[Task]:
    return [t for t in tasks if is_claim_expired(t, now, expiry_hours)]


def claim_task(
    task: Task,
    user_id: str,
    user_name: str,
    now: DayLike,
    expiry_hours: int = DEFAULT_CLAIM_EXPIRY_HOURS,
) -> Task:
    """Return a copy of ``task`` claimed by ``user_id``."""
    if task.status is not TaskStatus.PENDING:
        raise TaskClaimError(
            f"Task {task.id} is {task.status.value}, only pending tasks can be claimed",
            task_id=task.id,
            schedule_id=task.schedule_id,
            field="status",
        )
    if (
        task.claimed_by
        and task.claimed_by != user_id
        and not is_claim_expired(task, now, expiry_hours)
    ):
        raise TaskClaimError(
            f"Task {task.id} is already claimed by {task.claimed_by_name or task.claimed_by}",
            task_id=task.id,
            schedule_id=task.schedule_id,
            field="claimed_by",
        )
    return replace(task, claimed_by=user_id, claimed_by_name=user_name, claimed_at=to_instant(now))


def release_task(task: Task) -> Task:
    return replace(task, claimed_by=None, claimed_by_name=None, claimed_at=None)
