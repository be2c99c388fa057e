"""
SiteCheck Checks - Scheduler Jobs

Periodic trigger for task generation and claim expiry on its own APScheduler
BackgroundScheduler instance.
"""
import logging
from apscheduler.schedulers.background import BackgroundScheduler

from .config import get_config, get_timezone
from .service import run_generation, release_expired_claims

logger = logging.getLogger("checks.scheduler_jobs")

_scheduler = None


def get_check_scheduler() -> BackgroundScheduler:
    """Get or create the singleton check scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(
            timezone=get_timezone(),
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 600},
        )
    return _scheduler


def init_check_scheduler() -> bool:
    """Register and start the check jobs. Returns False when generation is disabled."""
    if not get_config("generation_enabled", False):
        logger.info("[Checks] Scheduler not started: generation_enabled is off")
        return False

    scheduler = get_check_scheduler()
    if scheduler.running:
        return True

    # Nightly generation across the lookahead horizon
    scheduler.add_job(
        _generation_job,
        "cron",
        hour=get_config("generation_hour", 2),
        minute=0,
        id="checks_generate_tasks",
        replace_existing=True,
    )

    scheduler.add_job(
        _release_claims_job,
        "interval",
        minutes=get_config("claim_release_interval_minutes", 15),
        id="checks_release_claims",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("[Checks] Scheduler started with generation and claim-release jobs")
    return True


def shutdown_check_scheduler():
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None


def _generation_job():
    try:
        report = run_generation()
        for failure in report.failures:
            logger.warning(f"[Checks] Schedule {failure.schedule_id} skipped: {failure.message}")
    except Exception as e:
        logger.error(f"[Checks] Generation job failed: {e}")


def _release_claims_job():
    try:
        release_expired_claims()
    except Exception as e:
        logger.error(f"[Checks] Claim release job failed: {e}")
