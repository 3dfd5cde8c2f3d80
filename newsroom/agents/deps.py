"""
Pipeline dependency container.

The orchestrator owns locking, fact checking, persistence and cache
invalidation. Fetching, clustering and summary generation are external
collaborators, plugged in here through three small async protocols:

    Ingestor.fetch()                         -> List[ArticleIn]
    Clusterer.assign(articles, existing)     -> List[ClusterAssignment]
    Summarizer.summarize(incident_context)   -> List[CandidateSummary]

In mock mode the in-repo mock collaborators are used. Otherwise each
collaborator is loaded from a "module:attribute" import path in settings
(INGESTOR, CLUSTERER, SUMMARIZER). Loading is lazy so a misconfigured
deployment fails at the first run, not at import time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, runtime_checkable

from ..schemas.news import (
    ArticleIn, CandidateSummary, ClusterAssignment, ClusterRef,
    IncidentContext, StoredArticle,
)

logger = logging.getLogger(__name__)


class StageConfigurationError(Exception):
    """A pipeline collaborator is not configured or cannot be loaded."""


@runtime_checkable
class Ingestor(Protocol):
    async def fetch(self) -> List[ArticleIn]: ...


@runtime_checkable
class Clusterer(Protocol):
    async def assign(
        self, articles: List[StoredArticle], existing: List[ClusterRef],
    ) -> List[ClusterAssignment]: ...


@runtime_checkable
class Summarizer(Protocol):
    async def summarize(self, incident: IncidentContext) -> List[CandidateSummary]: ...


def _load_stage(stage: str, path: str):
    """Resolve an import path to a collaborator instance (classes are instantiated)."""
    from ..config import load_object

    if not path:
        raise StageConfigurationError(
            f"No {stage} configured: set {stage.upper()} to 'module:attribute' or enable MOCK_MODE"
        )
    try:
        obj = load_object(path)
    except (ImportError, AttributeError, ValueError) as e:
        raise StageConfigurationError(f"Cannot load {stage} from '{path}': {e}") from e
    if isinstance(obj, type):
        obj = obj()
    logger.info(f"Loaded {stage}: {path}")
    return obj


@dataclass
class PipelineDeps:
    """Collaborators for one pipeline run. Accessed through lazy properties."""

    mock_mode: bool = False
    ingestor_path: str = ""
    clusterer_path: str = ""
    summarizer_path: str = ""

    _ingestor: Optional[Ingestor] = field(default=None, repr=False)
    _clusterer: Optional[Clusterer] = field(default=None, repr=False)
    _summarizer: Optional[Summarizer] = field(default=None, repr=False)

    @classmethod
    def create(cls, mock_mode: bool = False) -> PipelineDeps:
        """Create deps with settings-aware mock_mode."""
        from ..config import get_settings
        settings = get_settings()
        return cls(
            mock_mode=mock_mode or settings.mock_mode,
            ingestor_path=settings.ingestor,
            clusterer_path=settings.clusterer,
            summarizer_path=settings.summarizer,
        )

    @property
    def ingestor(self) -> Ingestor:
        if self._ingestor is None:
            if self.mock_mode:
                from .mock_collaborators import MockIngestor
                self._ingestor = MockIngestor()
            else:
                self._ingestor = _load_stage("ingestor", self.ingestor_path)
        return self._ingestor

    @property
    def clusterer(self) -> Clusterer:
        if self._clusterer is None:
            if self.mock_mode:
                from .mock_collaborators import MockClusterer
                self._clusterer = MockClusterer()
            else:
                self._clusterer = _load_stage("clusterer", self.clusterer_path)
        return self._clusterer

    @property
    def summarizer(self) -> Summarizer:
        if self._summarizer is None:
            if self.mock_mode:
                from .mock_collaborators import MockSummarizer
                self._summarizer = MockSummarizer()
            else:
                self._summarizer = _load_stage("summarizer", self.summarizer_path)
        return self._summarizer
