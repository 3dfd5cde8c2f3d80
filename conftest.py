"""Shared pytest fixtures: temp-file database, fixed clock, settings, incident factory."""

import uuid
from datetime import datetime, timedelta

import pytest

from newsroom.config import Settings
from newsroom.database import Database
from newsroom.schemas.news import ArticleIn, ClusterAssignment


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta):
        self.now += timedelta(**delta)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 1, 12, 0, 0))


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'newsroom.db'}")
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def settings():
    return Settings(
        ENVIRONMENT="production",
        CRON_SECRET="test-secret",
        DATABASE_URL="sqlite://",
        SUPPORTED_LANGUAGES="en,si,ta",
        DEFAULT_LANGUAGE="en",
        MOCK_MODE=True,
        FACT_CHECK_BLOCKS_PUBLICATION=False,
    )


def _make_incident(
    db: Database,
    created_at: datetime,
    headline: str = "Floods hit Colombo district",
    category: str = "local",
    source_id: str = "adaderana",
    text: str = "The Disaster Management Centre said 4,350 families were affected.",
    langs=("en",),
    published: bool = True,
):
    """Insert one article, one incident linked to it and its summaries. Returns (cluster_id, article_id)."""
    article = ArticleIn(
        source_id=source_id,
        url=f"https://{source_id}.example/{uuid.uuid4().hex}",
        title=headline,
        raw_text=text,
    )
    [(article_id, _)] = db.insert_articles([article], now=created_at)
    cluster_id, _ = db.upsert_cluster(
        ClusterAssignment(
            headline=headline,
            headline_translations={"si": f"si-{headline}"},
            category=category,
            topics=["weather"],
            article_ids=[article_id],
        ),
        created_at,
    )
    for lang in langs:
        db.upsert_summary(
            cluster_id, lang, f"{lang}: {text}",
            confidence=1.0, needs_review=False, issues=[], verified_counts={},
            now=created_at,
        )
    if published:
        db.publish_cluster(cluster_id, created_at)
    return cluster_id, article_id


@pytest.fixture
def make_incident(db):
    def factory(created_at, **kwargs):
        return _make_incident(db, created_at, **kwargs)
    return factory
