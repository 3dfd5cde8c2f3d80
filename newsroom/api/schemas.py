"""API response schemas -- shaped for the presentation layer and the scheduler."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# -- Scheduler --

class CleanupStepResponse(BaseModel):
    name: str
    rows: int


class CleanupResponse(BaseModel):
    ok: bool = True
    message: str
    cutoffDate: str
    deleted: int = 0
    clusterIds: List[str] = Field(default_factory=list)  # sample, for logging
    steps: List[CleanupStepResponse] = Field(default_factory=list)


class LockStatusResponse(BaseModel):
    name: str
    locked: bool
    holder_token: Optional[str] = None
    acquired_at: Optional[str] = None
    expires_at: Optional[str] = None
    expired: Optional[bool] = None


class PipelineRunsResponse(BaseModel):
    count: int
    runs: List[Dict[str, Any]] = Field(default_factory=list)


# -- Read API --

class ClusterResponse(BaseModel):
    id: str
    slug: Optional[str] = None
    headline: str
    status: str
    category: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    first_seen: Optional[str] = None
    last_updated: Optional[str] = None
    created_at: Optional[str] = None
    source_count: int = 0
    summary: Optional[str] = None
    summary_version: Optional[int] = None
    needs_review: Optional[bool] = None
    sources: List[str] = Field(default_factory=list)


class ClusterListResponse(BaseModel):
    clusters: List[ClusterResponse] = Field(default_factory=list)
    count: int = 0
    lang: str = "en"


class ArticleResponse(BaseModel):
    id: str
    title: str
    url: str
    source_id: str
    image_url: Optional[str] = None
    published_at: Optional[str] = None


class ClusterDetailResponse(BaseModel):
    cluster: ClusterResponse
    articles: List[ArticleResponse] = Field(default_factory=list)


class SearchFiltersResponse(BaseModel):
    categories: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    dateMin: Optional[str] = None
    dateMax: Optional[str] = None
