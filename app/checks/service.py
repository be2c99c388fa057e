"""
SiteCheck Checks - Generation Service

Glue between the store and the engine: load active schedules, generate,
write each schedule's batch together with its rotation cursor.
"""
import datetime
import logging
import sqlite3
from typing import Optional

from .claims import expired_claims
from .config import get_config, get_local_now
from .engine import GenerationFailure, GenerationReport, generate_for_schedules
from .repository import (
    ScheduleRepository, TemplateRepository, TaskRepository, save_generation,
)

logger = logging.getLogger("checks.service")


def run_generation(
    now: Optional[datetime.datetime] = None,
    lookahead_days: Optional[int] = None,
) -> GenerationReport:
    """Generate and store tasks for every active schedule."""
    if now is None:
        now = get_local_now()
    if lookahead_days is None:
        lookahead_days = get_config("lookahead_days", 30)

    schedules = ScheduleRepository.get_active()
    templates = {t.id: t for t in TemplateRepository.get_all()}
    tasks_by_schedule = {s.id: TaskRepository.get_for_schedule(s.id) for s in schedules}

    report = generate_for_schedules(schedules, tasks_by_schedule, templates, lookahead_days, now)

    stored = 0
    for schedule_id in list(report.proposals):
        proposals = report.proposals[schedule_id]
        cursor = report.rotation_cursors[schedule_id]
        try:
            stored += save_generation(schedule_id, proposals, cursor)
        except sqlite3.Error as e:
            logger.error(f"[Checks] Schedule {schedule_id} tasks could not be stored: {e}")
            del report.proposals[schedule_id]
            del report.rotation_cursors[schedule_id]
            report.failures.append(GenerationFailure(
                schedule_id=schedule_id, field=None, message=f"store error: {e}",
            ))

    logger.info(
        f"[Checks] Generation run at {now:%Y-%m-%d %H:%M} stored {stored} task(s) "
        f"from {len(schedules)} active schedule(s)"
    )
    return report


def release_expired_claims(now: Optional[datetime.datetime] = None) -> int:
    """Drop claims older than claim_expiry_hours on pending tasks."""
    if now is None:
        now = get_local_now()
    expiry_hours = get_config("claim_expiry_hours", 4)
    expired = expired_claims(TaskRepository.get_all(status="pending", limit=5000), now, expiry_hours)
    released = TaskRepository.release_claims(t.id for t in expired)
    if released:
        logger.info(f"[Checks] Released {released} expired claim(s)")
    return released
