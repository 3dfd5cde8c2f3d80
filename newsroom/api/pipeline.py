"""Pipeline history router -- recent runs from pipeline_runs."""

from fastapi import APIRouter, Depends, Query

from newsroom.api.dependencies import DB, verify_cron_secret
from newsroom.api.schemas import PipelineRunsResponse

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.get("/runs", response_model=PipelineRunsResponse)
async def list_runs(db: DB, limit: int = Query(default=20, ge=1, le=100)):
    runs = db.get_pipeline_runs(limit=limit)
    return PipelineRunsResponse(count=len(runs), runs=runs)
