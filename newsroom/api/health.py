"""Health check router -- database, lock and cache status, config summary."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from newsroom.api.dependencies import DB, AppSettings, Cache, Locks

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    return {"service": "Newsroom Pipeline API", "version": "1.0.0"}


@router.get("/health")
async def health(db: DB, settings: AppSettings, cache: Cache, locks: Locks):
    database = "ok"
    try:
        last_run = db.get_last_successful_run()
    except Exception as e:
        logger.warning(f"Health check: database unavailable: {e}")
        database, last_run = "unavailable", None

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": database,
        "pipeline": {
            "locked": locks.is_locked(settings.lock_name),
            "last_successful_run": last_run.isoformat() if last_run else None,
        },
        "cache": cache.stats(),
        "config": {
            "environment": settings.environment,
            "mock_mode": settings.mock_mode,
            "languages": settings.get_languages(),
            "retention_days": settings.retention_days,
            "lock_ttl_minutes": settings.lock_ttl_minutes,
            "min_run_interval_minutes": settings.min_run_interval_minutes,
            "fact_check_min_confidence": settings.fact_check_min_confidence,
            "fact_check_blocks_publication": settings.fact_check_blocks_publication,
        },
    }
