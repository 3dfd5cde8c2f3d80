"""Scheduler router -- pipeline trigger, retention cleanup and lock status.

Every route requires `Authorization: Bearer <CRON_SECRET>`. A skipped run
(lock held, last run too recent, or nothing new fetched) is a normal 200
outcome. Pipeline failures come back as a generic 500; the error detail
is only included in development.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from newsroom.api.dependencies import (
    DB, AppSettings, Cache, Locks, Orchestrator, verify_cron_secret,
)
from newsroom.api.schemas import CleanupResponse, LockStatusResponse
from newsroom.news.retention import RetentionCleanup, RetentionError
from newsroom.tools.pipeline_lock import LockError

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_cron_secret)])

_TRUTHY = {"1", "true", "yes"}


def _failure(settings, message: str, detail: Optional[str] = None, **extra) -> JSONResponse:
    body = {"ok": False, "error": "Internal server error", "message": message, **extra}
    if detail and settings.is_development:
        body["detail"] = detail
    return JSONResponse(status_code=500, content=body)


@router.api_route("/run", methods=["GET", "POST"])
async def run_pipeline(
    orchestrator: Orchestrator,
    settings: AppSettings,
    force: Optional[str] = Query(default=None),
):
    """Run the pipeline once. force=1 skips the lock pre-check, not acquire()."""
    forced = (force or "").lower() in _TRUTHY
    try:
        outcome = await orchestrator.run(force=forced, trigger="cron")
    except Exception as e:
        logger.exception(f"Pipeline trigger crashed: {e}")
        return _failure(settings, "Pipeline execution failed", str(e))

    if outcome.skipped:
        return {"ok": True, "skipped": True, "reason": outcome.reason, "run_id": outcome.run_id}
    if not outcome.ok:
        return _failure(settings, "Pipeline execution failed", outcome.error, run_id=outcome.run_id)

    return {
        "ok": True,
        "run_id": outcome.run_id,
        "forced": forced,
        "states": outcome.states,
        **outcome.stats.model_dump(),
    }


@router.api_route("/cleanup", methods=["GET", "POST"], response_model=CleanupResponse)
async def cleanup(db: DB, settings: AppSettings, cache: Cache):
    """Purge incidents past the retention horizon."""
    cleaner = RetentionCleanup(db, retention_days=settings.retention_days)
    cutoff = cleaner.cutoff()
    try:
        report = cleaner.purge_older_than(cutoff)
    except RetentionError as e:
        # Completed steps stay done; the next scheduled call finishes the rest
        return _failure(
            settings,
            "Cleanup incomplete",
            str(e),
            cutoffDate=cutoff.isoformat(),
            failedStep=e.report.failed_step,
            completedSteps=[s.model_dump() for s in e.report.steps],
        )
    except Exception as e:
        logger.exception(f"Cleanup failed: {e}")
        return _failure(settings, "Cleanup failed", str(e), cutoffDate=cutoff.isoformat())

    if report.deleted_count:
        cache.invalidate_read_api()
    swept = cache.cleanup_expired()
    if swept:
        logger.info(f"Cleanup: {swept} expired cache entries dropped")

    return CleanupResponse(
        message="Cleanup completed" if report.deleted_count else "No clusters to delete",
        cutoffDate=report.cutoff.isoformat(),
        deleted=report.deleted_count,
        clusterIds=report.deleted_ids[:settings.cleanup_sample_size],
        steps=[s.model_dump() for s in report.steps],
    )


@router.get("/lock", response_model=LockStatusResponse)
async def lock_status(locks: Locks, settings: AppSettings):
    try:
        return locks.lock_status(settings.lock_name)
    except LockError as e:
        logger.error(f"Lock status unavailable: {e}")
        body = {"ok": False, "error": "Lock store unavailable", "name": settings.lock_name}
        if settings.is_development:
            body["detail"] = str(e)
        return JSONResponse(status_code=503, content=body)
