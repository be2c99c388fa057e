# ================================================================
# SiteCheck - Check Scheduling Backend
# ================================================================
# Serves the check scheduling API and, when enabled, runs the
# nightly task generation job.
# ================================================================

import logging

from fastapi import FastAPI

from app.checks import register_check_routes, init_check_scheduler, shutdown_check_scheduler

logger = logging.getLogger("sitecheck")

# ================================================================
# FASTAPI APP
# ================================================================

app = FastAPI(title="SiteCheck")

register_check_routes(app)


@app.on_event("startup")
async def _startup():
    started = init_check_scheduler()
    logger.info(f"[SiteCheck] Backend startup (scheduler {'on' if started else 'off'})")


@app.on_event("shutdown")
async def _shutdown():
    shutdown_check_scheduler()


@app.get("/api/health")
async def health():
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
