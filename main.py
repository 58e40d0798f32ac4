# main.py

from dotenv import load_dotenv
load_dotenv()

import logging
import os
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI, HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
import time
import uuid

from batch_jobs import build_notifier, run_compliance_reminders
from compliance_errors import FetchError
from reminder_config import load_reminder_config
from summary_store import SummaryStore


# Request Logging Middleware
request_logger = logging.getLogger("request_logging")

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        start_time = time.time()

        response = await call_next(request)

        latency_ms = (time.time() - start_time) * 1000

        request_logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "endpoint": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
            }
        )

        return response


app = FastAPI()
app.add_middleware(RequestLoggingMiddleware)

reminder_config = load_reminder_config()
slack_notifier = build_notifier(reminder_config)

# ------------------------------------------------------------------
# Scheduler setup
# ------------------------------------------------------------------
scheduler_logger = logging.getLogger("batch_scheduler")
scheduler_timezone = datetime.now().astimezone().tzinfo
scheduler = AsyncIOScheduler(timezone=scheduler_timezone)
ENABLE_JOB_SCHEDULER = os.getenv("ENABLE_JOB_SCHEDULER", "false").lower() == "true"
REMINDER_CRON_HOUR = os.getenv("REMINDER_CRON_HOUR", "14")
REMINDER_CRON_DAYS = os.getenv("REMINDER_CRON_DAYS", "mon-fri")


def execute_compliance_reminders(dry_run: Optional[bool] = None):
    config = reminder_config
    if dry_run is not None:
        config = config.model_copy(update={"dry_run": dry_run})
    return run_compliance_reminders(config, slack_notifier)


def compliance_reminder_daily_job():
    job_corr = "compliance_reminder_daily_job"
    try:
        summary = execute_compliance_reminders()
        scheduler_logger.info(
            "compliance_reminder_daily_job_complete",
            extra={"correlation_id": job_corr, **summary.to_logging_dict()},
        )
    except Exception as exc:  # pragma: no cover - defensive logging
        scheduler_logger.exception(
            "compliance_reminder_daily_job_failed",
            extra={"correlation_id": job_corr, "error": str(exc)},
        )


def _register_scheduler_jobs() -> None:
    if not ENABLE_JOB_SCHEDULER:
        scheduler_logger.info("[Scheduler] ENABLE_JOB_SCHEDULER is false; skipping job registration.")
        return

    try:
        scheduler.add_job(
            compliance_reminder_daily_job,
            CronTrigger(
                day_of_week=REMINDER_CRON_DAYS,
                hour=REMINDER_CRON_HOUR,
                minute=0,
                timezone=scheduler_timezone,
            ),
            id="compliance_reminder_daily_job",
            name="compliance_reminder_daily_job",
            replace_existing=True,
        )
    except Exception as exc:  # pragma: no cover - defensive logging
        scheduler_logger.error(
            "[Scheduler] Failed to register jobs; disabling scheduler for this run.",
            exc_info=True,
            extra={"error": str(exc)},
        )
        return


@app.on_event("startup")
async def start_scheduler() -> None:  # pragma: no cover - FastAPI lifecycle
    if not ENABLE_JOB_SCHEDULER:
        scheduler_logger.info("[Scheduler] ENABLE_JOB_SCHEDULER is false; skipping startup.")
        return

    _register_scheduler_jobs()
    if not scheduler.running:
        scheduler.start()
        scheduler_logger.info("job_scheduler_started", extra={"correlation_id": "scheduler"})


@app.on_event("shutdown")
async def stop_scheduler() -> None:  # pragma: no cover - FastAPI lifecycle
    if scheduler.running:
        scheduler.shutdown()


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------
def _healthy_response():
    return {"status": "ok"}


@app.get("/health")
def health():
    return _healthy_response()


@app.get("/healthz")
def healthz():
    return _healthy_response()


# ------------------------------------------------------------------
# Compliance reminders
# ------------------------------------------------------------------
@app.post("/run-reminders")
def run_reminders(dry_run: Optional[bool] = None):
    try:
        return execute_compliance_reminders(dry_run)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=f"Secureframe query failed: {exc}") from exc


@app.get("/last-run-summary")
def last_run_summary():
    run = SummaryStore.latest()
    if run is None:
        raise HTTPException(status_code=404, detail="No reminder run recorded yet")
    return run.summary


@app.get("/run-history")
def run_history(limit: int = 10):
    return [run.model_dump() for run in SummaryStore.recent_runs(limit)]
