"""FastAPI dependency injection -- Depends() patterns using app.state set in create_app()."""

import logging
import secrets
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request

from newsroom.agents.deps import PipelineDeps
from newsroom.agents.orchestrator import PipelineOrchestrator
from newsroom.config import Settings
from newsroom.database import Database
from newsroom.news.fact_guard import FactVerificationGuard
from newsroom.tools.pipeline_lock import LockManager
from newsroom.tools.response_cache import SafeCache

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> SafeCache:
    return request.app.state.cache


def get_lock_manager(request: Request) -> LockManager:
    return request.app.state.lock_manager


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    state = request.app.state
    return PipelineOrchestrator(
        db=state.db,
        lock_manager=state.lock_manager,
        guard=state.guard,
        cache=state.cache,
        deps=state.deps,
        settings=state.settings,
    )


async def verify_cron_secret(
    request: Request,
    authorization: Annotated[Optional[str], Header()] = None,
):
    """Bearer gate for scheduler endpoints. An empty CRON_SECRET rejects everything."""
    secret = request.app.state.settings.cron_secret
    scheme, _, token = (authorization or "").partition(" ")
    if (
        not secret
        or scheme.lower() != "bearer"
        or not token
        or not secrets.compare_digest(token.strip().encode(), secret.encode())
    ):
        logger.warning(f"Rejected scheduler call to {request.url.path}")
        raise HTTPException(status_code=401, detail="Unauthorized")


# Type aliases for cleaner route signatures
DB = Annotated[Database, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Cache = Annotated[SafeCache, Depends(get_cache)]
Locks = Annotated[LockManager, Depends(get_lock_manager)]
Orchestrator = Annotated[PipelineOrchestrator, Depends(get_orchestrator)]
