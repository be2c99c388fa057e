"""
SiteCheck Check Scheduling Module
Turns recurring inspection schedules (fire extinguishers monthly, alarm call
points weekly in rotation) into due-dated, prioritised tasks.
"""
from .recurrence import next_due_date
from .assignment import resolve_target, next_rotation_cursor
from .priority import classify_priority
from .engine import task_already_exists, generate_tasks, generate_for_schedules
from .routes import register_check_routes
from .scheduler_jobs import init_check_scheduler, shutdown_check_scheduler
from .repository import init_check_schema

__all__ = [
    "next_due_date",
    "resolve_target",
    "next_rotation_cursor",
    "classify_priority",
    "task_already_exists",
    "generate_tasks",
    "generate_for_schedules",
    "register_check_routes",
    "init_check_scheduler",
    "shutdown_check_scheduler",
    "init_check_schema",
]
