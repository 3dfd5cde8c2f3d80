"""
Article, incident and summary models exchanged with the pipeline collaborators.

Hierarchy: ArticleIn (fetched) → StoredArticle (persisted) → ClusterAssignment
(grouped into an incident) → CandidateSummary (generated per language)
"""

import hashlib
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ArticleIn(BaseModel):
    """Already-fetched article handed to the pipeline by the ingestion stage."""
    source_id: str
    url: str
    title: str
    raw_text: str = ""
    guid: Optional[str] = None
    language: str = "en"
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None

    @property
    def content_hash(self) -> str:
        """Stable dedup key over url, guid and title."""
        basis = f"{self.url}|{self.guid or ''}|{self.title}"
        return hashlib.md5(basis.encode("utf-8")).hexdigest()


class StoredArticle(BaseModel):
    """Article as persisted, passed to the clustering stage."""
    id: str
    source_id: str
    url: str
    title: str
    raw_text: str = ""
    language: str = "en"
    cluster_id: Optional[str] = None
    published_at: Optional[datetime] = None


class ClusterRef(BaseModel):
    """Lightweight view of an existing incident, for attaching new articles."""
    id: str
    headline: str
    category: Optional[str] = None
    last_seen_at: Optional[datetime] = None


class ClusterAssignment(BaseModel):
    """
    Clustering decision for a group of articles.

    cluster_id=None means "create a new incident"; otherwise the articles
    are attached to the existing incident.
    """
    cluster_id: Optional[str] = None
    headline: str
    headline_translations: Dict[str, str] = Field(default_factory=dict)
    category: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    article_ids: List[str] = Field(default_factory=list)

    @field_validator("topics", mode="before")
    @classmethod
    def coerce_topics(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return list(dict.fromkeys(t for t in v if t))


class IncidentContext(BaseModel):
    """Everything the summarization stage needs for one incident."""
    cluster_id: str
    headline: str
    category: Optional[str] = None
    source_texts: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=lambda: ["en"])


class CandidateSummary(BaseModel):
    """AI-generated summary text for one language, before fact checking."""
    lang: str
    text: str
