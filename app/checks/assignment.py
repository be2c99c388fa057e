"""
SiteCheck Checks - Asset Assignment

Decides which asset each generated task covers and moves the rotation cursor
on after a run so the next run picks up where this one left off.
"""
import logging
from typing import Optional

from .models import AssignmentStrategy, CheckTemplate, Schedule

logger = logging.getLogger("checks.assignment")


def resolve_target(
    schedule: Schedule,
    template: Optional[CheckTemplate],
    occurrence_index: int,
) -> Optional[str]:
    """
    Asset id for one occurrence, or None when the task covers every asset.

    ``occurrence_index`` counts tasks created so far in the current run.
    """
    strategy = template.strategy if template is not None else None

    if strategy is None:
        return schedule.asset_id

    if strategy is AssignmentStrategy.ROTATE:
        if not schedule.asset_ids:
            logger.debug(
                f"[Checks] Schedule {schedule.id} rotates over an empty pool, "
                f"using legacy asset {schedule.asset_id}"
            )
            return schedule.asset_id
        index = (schedule.rotation_cursor + occurrence_index) % schedule.pool_size
        return schedule.asset_ids[index]

    if strategy is AssignmentStrategy.ALL:
        return None

    raise ValueError(f"Unhandled assignment strategy: {strategy!r}")


def next_rotation_cursor(schedule: Schedule, tasks_created: int) -> int:
    """Rotation cursor to persist after ``tasks_created`` tasks were written."""
    if tasks_created < 0:
        raise ValueError("tasks_created cannot be negative")
    pool_size = schedule.pool_size or 1
    return (schedule.rotation_cursor + tasks_created) % pool_size
