"""
Schemas package: data models for the newsroom pipeline.

Models are organized by concern in submodules:
  - news.py: ArticleIn, StoredArticle, ClusterAssignment, CandidateSummary
  - validation.py: FactCheckResult, VerifiedCount
  - pipeline.py: RunState, PipelineStats, PipelineOutcome, RetentionReport
"""

from newsroom.schemas.news import (
    ArticleIn, StoredArticle, ClusterRef, ClusterAssignment,
    IncidentContext, CandidateSummary,
)
from newsroom.schemas.validation import FactCheckResult, VerifiedCount
from newsroom.schemas.pipeline import (
    RunState, SkipReason, PipelineStats, PipelineOutcome,
    RetentionStep, RetentionReport,
)

__all__ = [
    "ArticleIn", "StoredArticle", "ClusterRef", "ClusterAssignment",
    "IncidentContext", "CandidateSummary",
    "FactCheckResult", "VerifiedCount",
    "RunState", "SkipReason", "PipelineStats", "PipelineOutcome",
    "RetentionStep", "RetentionReport",
]
