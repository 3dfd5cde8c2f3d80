"""
Newsroom Pipeline - Main Entry Point.
FastAPI server and CLI interface.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .agents.deps import PipelineDeps
from .agents.orchestrator import PipelineOrchestrator
from .api import clusters, cron, health, pipeline
from .config import Settings, get_settings
from .database import Database
from .news.fact_guard import FactVerificationGuard
from .news.retention import RetentionCleanup
from .tools.pipeline_lock import LockManager
from .tools.response_cache import SafeCache, create_response_cache

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_components(
    settings: Settings,
    db: Optional[Database] = None,
    cache: Optional[SafeCache] = None,
    deps: Optional[PipelineDeps] = None,
) -> dict:
    """Wire the shared services once per process."""
    if db is None:
        db = Database(settings.database_url)
        db.create_tables()
    return {
        "settings": settings,
        "db": db,
        "cache": cache or create_response_cache(
            default_ttl=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        ),
        "lock_manager": LockManager(db, ttl_minutes=settings.lock_ttl_minutes),
        "guard": FactVerificationGuard(min_confidence=settings.fact_check_min_confidence),
        "deps": deps or PipelineDeps.create(mock_mode=settings.mock_mode),
    }


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    cache: Optional[SafeCache] = None,
    deps: Optional[PipelineDeps] = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Starting Newsroom Pipeline API (env={settings.environment}, "
            f"mock_mode={settings.mock_mode}, languages={settings.get_languages()})"
        )
        if not settings.cron_secret:
            logger.warning("CRON_SECRET is empty: scheduler endpoints will reject every call")
        yield
        app.state.db.engine.dispose()

    app = FastAPI(
        title="Newsroom Pipeline",
        description="Guarded news pipeline runs, retention cleanup and a cached read API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    for name, value in build_components(settings, db, cache, deps).items():
        setattr(app.state, name, value)

    app.include_router(health.router)
    app.include_router(cron.router, prefix="/api/cron", tags=["cron"])
    app.include_router(pipeline.router, prefix="/api/pipeline", tags=["pipeline"])
    app.include_router(clusters.router, prefix="/api", tags=["clusters"])
    return app


# CLI Runner
async def cli_main():
    """Command-line interface: serve the API, run the pipeline or the cleanup once."""
    import argparse

    parser = argparse.ArgumentParser(description="Newsroom Pipeline")
    parser.add_argument("--mock", action="store_true", help="Use mock collaborators (no external calls)")
    parser.add_argument("--force", action="store_true", help="Skip the lock pre-check (acquire still applies)")
    parser.add_argument("--cleanup", action="store_true", help="Run the retention cleanup instead of the pipeline")
    parser.add_argument("--server", action="store_true", help="Start the FastAPI server")
    parser.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")

    args = parser.parse_args()
    settings = get_settings()

    if args.server:
        import uvicorn
        logger.info(f"Starting server on port {args.port}...")
        uvicorn.run(create_app(settings), host="0.0.0.0", port=args.port)
        return

    components = build_components(
        settings, deps=PipelineDeps.create(mock_mode=args.mock),
    )

    if args.cleanup:
        report = RetentionCleanup(components["db"], retention_days=settings.retention_days).purge_older_than()
        print(f"Cutoff: {report.cutoff.isoformat()}")
        print(f"Deleted incidents: {report.deleted_count}")
        for step in report.steps:
            print(f"  {step.name}: {step.rows} rows")
        return

    orchestrator = PipelineOrchestrator(
        db=components["db"],
        lock_manager=components["lock_manager"],
        guard=components["guard"],
        cache=components["cache"],
        deps=components["deps"],
        settings=settings,
    )
    outcome = await orchestrator.run(force=args.force, trigger="cli")

    print("\n" + "=" * 60)
    print(f"Run: {outcome.run_id}")
    print(f"States: {' -> '.join(str(getattr(s, 'value', s)) for s in outcome.states)}")
    if outcome.skipped:
        print(f"Skipped: {getattr(outcome.reason, 'value', outcome.reason)}")
    elif not outcome.ok:
        print(f"Failed: {outcome.error}")
    else:
        stats = outcome.stats
        print(f"Articles fetched: {stats.articles_fetched} (new: {stats.articles_inserted})")
        print(f"Incidents created: {stats.clusters_created} | updated: {stats.clusters_updated}")
        print(f"Summaries: {stats.summaries_generated} (flagged: {stats.summaries_flagged})")
        print(f"Published: {stats.clusters_published}")
        for error in stats.errors[:5]:
            print(f"   - [{error['stage']}] {error['message']}")
    print("=" * 60 + "\n")


def main():
    """Entry point for CLI."""
    asyncio.run(cli_main())


if __name__ == "__main__":
    main()
