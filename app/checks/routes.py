"""
SiteCheck Checks - API Routes
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .claims import claim_task, release_task
from .config import CheckConfig, get_config, get_local_now
from .engine import validate_schedule
from .errors import ScheduleConfigError, ScheduleNotFoundError, TaskClaimError
from .models import Schedule, CheckTemplate
from .priority import classify_priority, task_bucket
from .repository import (
    init_check_schema, ScheduleRepository, TemplateRepository, TaskRepository,
)
from .service import run_generation

logger = logging.getLogger("checks.routes")


def _error(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message, **extra}, status_code=status_code)


async def _read_json(request: Request) -> Optional[dict]:
    """The request body as a dict, or None when it is not a JSON object."""
    try:
        data = await request.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def register_check_routes(app: FastAPI):
    """Register all check scheduling endpoints."""

    init_check_schema()
    CheckConfig.init_defaults()

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    @app.get("/api/checks/schedules")
    async def api_get_schedules(request: Request):
        schedules = ScheduleRepository.get_all()
        return {"ok": True, "schedules": [s.to_dict() for s in schedules]}

    @app.post("/api/checks/schedules")
    async def api_create_schedule(request: Request):
        data = await _read_json(request)
        if data is None:
            return _error("Request body must be a JSON object", 400)
        data.pop("id", None)
        try:
            schedule = Schedule.from_row(data)
            validate_schedule(schedule)
        except ScheduleConfigError as e:
            return _error(str(e), 400, field=e.field)
        except (TypeError, ValueError) as e:
            return _error(f"Invalid schedule: {e}", 400)
        sid = ScheduleRepository.create(schedule)
        logger.info(f"[Checks] Schedule {sid} created ({schedule.frequency})")
        return {"ok": True, "schedule_id": sid}

    @app.post("/api/checks/schedules/{schedule_id}/active")
    async def api_set_schedule_active(schedule_id: str, request: Request):
        data = await _read_json(request)
        if data is None:
            return _error("Request body must be a JSON object", 400)
        try:
            ScheduleRepository.set_active(schedule_id, bool(data.get("active", True)))
        except ScheduleNotFoundError as e:
            return _error(str(e), 404)
        return {"ok": True}

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    @app.get("/api/checks/templates")
    async def api_get_templates(request: Request):
        return {"ok": True, "templates": [t.to_dict() for t in TemplateRepository.get_all()]}

    @app.post("/api/checks/templates")
    async def api_create_template(request: Request):
        data = await _read_json(request)
        if data is None:
            return _error("Request body must be a JSON object", 400)
        template = CheckTemplate.from_row(data)
        if data.get("strategy") and template.strategy is None:
            return _error(f"Unknown assignment strategy {data['strategy']!r}", 400, field="strategy")
        tid = TemplateRepository.create(template)
        return {"ok": True, "template_id": tid}

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @app.get("/api/checks/tasks")
    async def api_get_tasks(request: Request, schedule_id: Optional[str] = None, status: Optional[str] = None):
        now = get_local_now()
        if schedule_id:
            tasks = TaskRepository.get_for_schedule(schedule_id)
        else:
            tasks = TaskRepository.get_all(status=status)
        rows = []
        for t in tasks:
            d = t.to_dict()
            d["bucket"] = task_bucket(t, now)
            d["current_priority"] = classify_priority(t.due_date, now).value
            rows.append(d)
        return {"ok": True, "tasks": rows}

    @app.get("/api/checks/config")
    async def api_get_config(request: Request):
        return {"ok": True, "config": CheckConfig.get_all()}

    @app.post("/api/checks/generate")
    async def api_generate(request: Request):
        report = run_generation()
        return report.to_dict()

    @app.post("/api/checks/tasks/{task_id}/claim")
    async def api_claim_task(task_id: str, request: Request):
        data = await _read_json(request)
        if data is None:
            return _error("Request body must be a JSON object", 400)
        task = TaskRepository.get_by_id(task_id)
        if task is None:
            return _error(f"Task {task_id} not found", 404)
        user_id = data.get("user_id")
        if not user_id:
            return _error("user_id is required", 400, field="user_id")
        try:
            task = claim_task(
                task, user_id, data.get("user_name") or user_id, get_local_now(),
                get_config("claim_expiry_hours", 4),
            )
        except TaskClaimError as e:
            return _error(str(e), 409, field=e.field)
        TaskRepository.update_claim(task)
        return {"ok": True, "task": task.to_dict()}

    @app.post("/api/checks/tasks/{task_id}/release")
    async def api_release_task(task_id: str, request: Request):
        task = TaskRepository.get_by_id(task_id)
        if task is None:
            return _error(f"Task {task_id} not found", 404)
        task = release_task(task)
        TaskRepository.update_claim(task)
        return {"ok": True, "task": task.to_dict()}
