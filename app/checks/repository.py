"""
SiteCheck Checks - SQLite Store

Schema and repositories for schedules, templates, tasks and configuration.

The tasks table carries a unique index on (schedule_id, due_date). Task
batches are written with INSERT OR IGNORE in the same transaction as the
schedule's new rotation cursor, so a second generation run racing on a stale
snapshot cannot create a duplicate task.
"""
import json
import logging
import os
import sqlite3
import uuid
import datetime
from typing import Optional, List, Dict, Iterable

from .dates import format_day
from .errors import ScheduleNotFoundError
from .models import Schedule, CheckTemplate, Task

logger = logging.getLogger("checks.repository")

DB_PATH = os.environ.get("CHECKS_DB_PATH", "sitecheck.db")


def get_db():
    conn = sqlite3.connect(DB_PATH, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _ts() -> str:
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


# ============================================================================
# Database Schema
# ============================================================================

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS check_schedules (
    id TEXT PRIMARY KEY,
    org_id TEXT,
    site_id TEXT,
    name TEXT,
    asset_ids_json TEXT DEFAULT '[]',
    asset_id TEXT,
    template_id TEXT,
    frequency TEXT DEFAULT 'monthly',
    start_date TEXT,
    active INTEGER DEFAULT 1,
    rotation_cursor INTEGER DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS check_templates (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    strategy TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS check_tasks (
    id TEXT PRIMARY KEY,
    org_id TEXT,
    site_id TEXT,
    asset_id TEXT,
    schedule_id TEXT NOT NULL,
    template_id TEXT,
    due_date TEXT NOT NULL,
    status TEXT DEFAULT 'pending',
    assignee_id TEXT,
    priority TEXT DEFAULT 'low',
    claimed_by TEXT,
    claimed_by_name TEXT,
    claimed_at TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS check_config (
    key TEXT PRIMARY KEY,
    value TEXT,
    value_type TEXT DEFAULT 'string',
    category TEXT DEFAULT 'general',
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_by TEXT
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_ct_schedule_due ON check_tasks (schedule_id, due_date);
CREATE INDEX IF NOT EXISTS idx_ct_status ON check_tasks (status);
CREATE INDEX IF NOT EXISTS idx_cs_active ON check_schedules (active);
"""


def init_check_schema():
    """Create check tables if they don't exist."""
    conn = get_db()
    conn.executescript(SCHEMA_SQL)
    conn.commit()
    conn.close()


def _instant_text(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else None


# ============================================================================
# Repositories
# ============================================================================

class ScheduleRepository:
    @staticmethod
    def get_all() -> List[Schedule]:
        conn = get_db()
        rows = conn.execute("SELECT * FROM check_schedules ORDER BY created_at, id").fetchall()
        conn.close()
        return [Schedule.from_row(r) for r in rows]

    @staticmethod
    def get_active() -> List[Schedule]:
        conn = get_db()
        rows = conn.execute(
            "SELECT * FROM check_schedules WHERE active = 1 ORDER BY created_at, id").fetchall()
        conn.close()
        return [Schedule.from_row(r) for r in rows]

    @staticmethod
    def get_by_id(schedule_id: str) -> Optional[Schedule]:
        conn = get_db()
        row = conn.execute("SELECT * FROM check_schedules WHERE id = ?", (schedule_id,)).fetchone()
        conn.close()
        return Schedule.from_row(row) if row else None

    @staticmethod
    def create(s: Schedule) -> str:
        sid = s.id or _new_id("sched")
        ts = _ts()
        conn = get_db()
        conn.execute(
            """INSERT INTO check_schedules
               (id, org_id, site_id, name, asset_ids_json, asset_id, template_id,
                frequency, start_date, active, rotation_cursor, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (sid, s.org_id, s.site_id, s.name, json.dumps(s.asset_ids), s.asset_id,
             s.template_id, s.frequency, format_day(s.start_date),
             1 if s.active else 0, s.rotation_cursor, ts, ts),
        )
        conn.commit()
        conn.close()
        return sid

    @staticmethod
    def set_active(schedule_id: str, active: bool):
        conn = get_db()
        cur = conn.execute(
            "UPDATE check_schedules SET active = ?, updated_at = ? WHERE id = ?",
            (1 if active else 0, _ts(), schedule_id),
        )
        conn.commit()
        conn.close()
        if cur.rowcount == 0:
            raise ScheduleNotFoundError(f"Schedule {schedule_id} not found", schedule_id=schedule_id)

    @staticmethod
    def update_rotation_cursor(schedule_id: str, rotation_cursor: int, conn=None):
        """Store a new cursor; with ``conn`` the caller owns the commit."""
        own = conn is None
        if own:
            conn = get_db()
        conn.execute(
            "UPDATE check_schedules SET rotation_cursor = ?, updated_at = ? WHERE id = ?",
            (rotation_cursor, _ts(), schedule_id),
        )
        if own:
            conn.commit()
            conn.close()


class TemplateRepository:
    @staticmethod
    def get_all() -> List[CheckTemplate]:
        conn = get_db()
        rows = conn.execute("SELECT * FROM check_templates ORDER BY name").fetchall()
        conn.close()
        return [CheckTemplate.from_row(r) for r in rows]

    @staticmethod
    def get_by_id(template_id: str) -> Optional[CheckTemplate]:
        conn = get_db()
        row = conn.execute("SELECT * FROM check_templates WHERE id = ?", (template_id,)).fetchone()
        conn.close()
        return CheckTemplate.from_row(row) if row else None

    @staticmethod
    def create(t: CheckTemplate) -> str:
        tid = t.id or _new_id("tpl")
        conn = get_db()
        conn.execute(
            "INSERT INTO check_templates (id, name, strategy, created_at) VALUES (?, ?, ?, ?)",
            (tid, t.name, t.strategy.value if t.strategy else None, _ts()),
        )
        conn.commit()
        conn.close()
        return tid


class TaskRepository:
    @staticmethod
    def get_for_schedule(schedule_id: str) -> List[Task]:
        conn = get_db()
        rows = conn.execute(
            "SELECT * FROM check_tasks WHERE schedule_id = ? ORDER BY due_date",
            (schedule_id,)).fetchall()
        conn.close()
        return [Task.from_row(r) for r in rows]

    @staticmethod
    def get_all(status: str = None, limit: int = 500) -> List[Task]:
        conn = get_db()
        sql = "SELECT * FROM check_tasks WHERE 1=1"
        params: list = []
        if status:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY due_date ASC LIMIT ?"
        params.append(limit)
        rows = conn.execute(sql, params).fetchall()
        conn.close()
        return [Task.from_row(r) for r in rows]

    @staticmethod
    def get_by_id(task_id: str) -> Optional[Task]:
        conn = get_db()
        row = conn.execute("SELECT * FROM check_tasks WHERE id = ?", (task_id,)).fetchone()
        conn.close()
        return Task.from_row(row) if row else None

    @staticmethod
    def update_claim(task: Task):
        conn = get_db()
        conn.execute(
            """UPDATE check_tasks SET claimed_by = ?, claimed_by_name = ?, claimed_at = ?,
               updated_at = ? WHERE id = ?""",
            (task.claimed_by, task.claimed_by_name, _instant_text(task.claimed_at), _ts(), task.id),
        )
        conn.commit()
        conn.close()

    @staticmethod
    def release_claims(task_ids: Iterable[str]) -> int:
        ids = list(task_ids)
        if not ids:
            return 0
        conn = get_db()
        ts = _ts()
        conn.executemany(
            """UPDATE check_tasks SET claimed_by = NULL, claimed_by_name = NULL,
               claimed_at = NULL, updated_at = ? WHERE id = ?""",
            [(ts, tid) for tid in ids],
        )
        conn.commit()
        conn.close()
        return len(ids)


def save_generation(schedule_id: str, tasks: List[Task], rotation_cursor: int) -> int:
    """
    Write a generated batch and the schedule's new rotation cursor together.

    Returns how many tasks were actually inserted; a task whose
    (schedule_id, due_date) is already stored is skipped.
    """
    conn = get_db()
    ts = _ts()
    inserted = 0
    try:
        for t in tasks:
            cur = conn.execute(
                """INSERT OR IGNORE INTO check_tasks
                   (id, org_id, site_id, asset_id, schedule_id, template_id, due_date,
                    status, assignee_id, priority, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (t.id or _new_id("task"), t.org_id, t.site_id, t.asset_id, schedule_id,
                 t.template_id, format_day(t.due_date), t.status.value, t.assignee_id,
                 t.priority.value, ts, ts),
            )
            inserted += cur.rowcount
        ScheduleRepository.update_rotation_cursor(schedule_id, rotation_cursor, conn=conn)
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    finally:
        conn.close()

    if inserted < len(tasks):
        logger.warning(
            f"[Checks] Schedule {schedule_id}: {len(tasks) - inserted} task(s) already stored, skipped"
        )
    return inserted
