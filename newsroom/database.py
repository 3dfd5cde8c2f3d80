"""
SQL database: pipeline lock, run bookkeeping, incidents and their summaries.

Tables:
  - pipeline_locks: Named TTL-bounded locks (one row per lock name)
  - pipeline_settings: Single-row pipeline state (last successful run)
  - pipeline_runs: Run history with status, counts, timing
  - clusters: Incidents (deduplicated news events)
  - articles: Source articles, weakly linked to an incident via cluster_id
  - cluster_articles: Join rows linking articles to incidents
  - summaries: One AI summary per (incident, language) with fact-check flags

Foreign keys are declared without ON DELETE CASCADE: dependents are removed
explicitly by the retention cleanup, in order.
"""

import json
import logging
import re
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint, create_engine, delete, event, func, select, update,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    """Naive UTC now. All DateTime columns hold UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid.uuid4())


def _slugify(headline: str, cluster_id: str) -> str:
    words = re.findall(r"[a-z0-9]+", (headline or "").lower())
    base = "-".join(words)[:60].strip("-") or "incident"
    return f"{base}-{cluster_id[:8]}"


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


# ── Models ───────────────────────────────────────────────────────────────────

class PipelineLockModel(Base):
    """Distributed lock row. A lock whose expires_at has passed counts as absent."""
    __tablename__ = "pipeline_locks"

    name = Column(String(100), primary_key=True)
    holder_token = Column(String(64), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)


class PipelineSettingsModel(Base):
    """Single-row pipeline state ("main")."""
    __tablename__ = "pipeline_settings"

    name = Column(String(50), primary_key=True, default="main")
    last_successful_run = Column(DateTime)
    updated_at = Column(DateTime, default=_utcnow)


class PipelineRunModel(Base):
    """Pipeline run history."""
    __tablename__ = "pipeline_runs"

    id = Column(String(50), primary_key=True)
    status = Column(String(20), default="running")  # running | completed | failed | skipped
    trigger = Column(String(30), default="api")
    forced = Column(Boolean, default=False)
    articles_fetched = Column(Integer, default=0)
    articles_inserted = Column(Integer, default=0)
    clusters_created = Column(Integer, default=0)
    clusters_updated = Column(Integer, default=0)
    summaries_generated = Column(Integer, default=0)
    summaries_flagged = Column(Integer, default=0)
    clusters_published = Column(Integer, default=0)
    errors = Column(Text)  # JSON array
    run_time_seconds = Column(Float, default=0)
    started_at = Column(DateTime, default=_utcnow)
    completed_at = Column(DateTime)


class ClusterModel(Base):
    """Incident: one news event aggregated from one or more articles."""
    __tablename__ = "clusters"

    id = Column(String(36), primary_key=True, default=_new_id)
    slug = Column(String(120), index=True)
    headline = Column(String(500), nullable=False)
    headline_translations = Column(Text, default="{}")  # JSON {lang: headline}
    status = Column(String(20), default="draft", index=True)  # draft | published
    category = Column(String(50), index=True)
    topics = Column(Text, default="[]")  # JSON array
    source_count = Column(Integer, default=0)
    article_count = Column(Integer, default=0)
    first_seen_at = Column(DateTime, default=_utcnow)
    last_seen_at = Column(DateTime, default=_utcnow, index=True)
    created_at = Column(DateTime, default=_utcnow, index=True)
    updated_at = Column(DateTime, default=_utcnow)
    # created_at + retention horizon; hides the incident before physical deletion
    expires_at = Column(DateTime, index=True)
    published_at = Column(DateTime)


class ArticleModel(Base):
    """Source article. cluster_id is a weak reference, cleared on purge."""
    __tablename__ = "articles"

    id = Column(String(36), primary_key=True, default=_new_id)
    source_id = Column(String(100), nullable=False, index=True)
    cluster_id = Column(String(36), ForeignKey("clusters.id"), nullable=True, index=True)
    url = Column(String(1000), nullable=False, unique=True)
    guid = Column(String(500))
    title = Column(String(500), nullable=False)
    raw_text = Column(Text, default="")
    language = Column(String(10), default="en")
    image_url = Column(String(1000))
    hash = Column(String(64), unique=True, index=True)
    published_at = Column(DateTime)
    created_at = Column(DateTime, default=_utcnow)


class ClusterArticleModel(Base):
    """Article ↔ incident link rows."""
    __tablename__ = "cluster_articles"
    __table_args__ = (UniqueConstraint("cluster_id", "article_id", name="uq_cluster_article"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    cluster_id = Column(String(36), ForeignKey("clusters.id"), nullable=False, index=True)
    article_id = Column(String(36), ForeignKey("articles.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow)


class SummaryModel(Base):
    """AI summary of an incident in one language, with fact-check results."""
    __tablename__ = "summaries"
    __table_args__ = (UniqueConstraint("cluster_id", "lang", name="uq_summary_cluster_lang"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    cluster_id = Column(String(36), ForeignKey("clusters.id"), nullable=False, index=True)
    lang = Column(String(10), nullable=False, default="en")
    text = Column(Text, nullable=False)
    version = Column(Integer, default=1)
    confidence_score = Column(Float, default=1.0)
    needs_review = Column(Boolean, default=False)
    issues = Column(Text, default="[]")  # JSON array
    verified_counts = Column(Text, default="{}")  # JSON {class: {verified, total}}
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow)


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ── Database class ───────────────────────────────────────────────────────────

class Database:
    """Database manager. Use get_database() for the process-wide instance."""

    def __init__(self, database_url: Optional[str] = None):
        settings = get_settings()
        url = database_url or settings.database_url
        if "aiosqlite" in url:
            url = url.replace("sqlite+aiosqlite", "sqlite")

        kwargs: Dict[str, Any] = {}
        is_sqlite = url.startswith("sqlite")
        if is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # In-memory databases live in a single connection
                kwargs["poolclass"] = StaticPool

        self.engine = create_engine(url, echo=False, **kwargs)
        if is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        """Create all tables (safe to call multiple times)."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Session:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Pipeline lock ─────────────────────────────────────────────────

    def get_lock(self, name: str) -> Optional[Dict]:
        with self.get_session() as session:
            row = session.get(PipelineLockModel, name)
            if row is None:
                return None
            return {
                "name": row.name,
                "holder_token": row.holder_token,
                "acquired_at": row.acquired_at,
                "expires_at": row.expires_at,
            }

    def insert_lock(
        self, name: str, holder_token: str, acquired_at: datetime, expires_at: datetime,
    ) -> None:
        """Unconditional insert. Raises IntegrityError if a row for name exists."""
        with self.get_session() as session:
            session.add(PipelineLockModel(
                name=name,
                holder_token=holder_token,
                acquired_at=acquired_at,
                expires_at=expires_at,
            ))
            session.flush()

    def take_over_expired_lock(
        self,
        name: str,
        holder_token: str,
        acquired_at: datetime,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """Overwrite the row only if it has expired. True if exactly one row changed."""
        with self.get_session() as session:
            result = session.execute(
                update(PipelineLockModel)
                .where(
                    PipelineLockModel.name == name,
                    PipelineLockModel.expires_at <= now,
                )
                .values(
                    holder_token=holder_token,
                    acquired_at=acquired_at,
                    expires_at=expires_at,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def delete_lock(self, name: str, holder_token: str) -> int:
        """Delete the lock row only while it still carries this holder's token."""
        with self.get_session() as session:
            stmt = delete(PipelineLockModel).where(
                PipelineLockModel.name == name,
                PipelineLockModel.holder_token == holder_token,
            )
            result = session.execute(stmt.execution_options(synchronize_session=False))
            return result.rowcount or 0

    # ── Pipeline settings ─────────────────────────────────────────────

    def get_last_successful_run(self, name: str = "main") -> Optional[datetime]:
        with self.get_session() as session:
            row = session.get(PipelineSettingsModel, name)
            return row.last_successful_run if row else None

    def set_last_successful_run(self, timestamp: datetime, name: str = "main"):
        with self.get_session() as session:
            session.merge(PipelineSettingsModel(
                name=name,
                last_successful_run=timestamp,
                updated_at=timestamp,
            ))

    # ── Pipeline runs ─────────────────────────────────────────────────

    def save_pipeline_run(self, run_data: Dict[str, Any]) -> str:
        """Save a pipeline run record."""
        with self.get_session() as session:
            run = PipelineRunModel(
                id=run_data["run_id"],
                status=run_data.get("status", "running"),
                trigger=run_data.get("trigger", "api"),
                forced=run_data.get("forced", False),
                errors=json.dumps(run_data.get("errors", [])),
                started_at=run_data.get("started_at"),
                completed_at=run_data.get("completed_at"),
            )
            session.merge(run)  # merge = upsert
            return run.id

    def update_pipeline_run(self, run_id: str, updates: Dict[str, Any]):
        """Update specific fields of an existing pipeline run."""
        with self.get_session() as session:
            run = session.get(PipelineRunModel, run_id)
            if run:
                for key, value in updates.items():
                    if key == "errors":
                        value = json.dumps(value)
                    if hasattr(run, key):
                        setattr(run, key, value)

    def get_pipeline_runs(self, limit: int = 20) -> List[Dict]:
        """Get recent pipeline runs."""
        with self.get_session() as session:
            runs = session.execute(
                select(PipelineRunModel)
                .order_by(PipelineRunModel.started_at.desc())
                .limit(limit)
            ).scalars().all()
            return [
                {
                    "run_id": r.id,
                    "status": r.status,
                    "trigger": r.trigger,
                    "forced": r.forced,
                    "articles_fetched": r.articles_fetched,
                    "articles_inserted": r.articles_inserted,
                    "clusters_created": r.clusters_created,
                    "clusters_updated": r.clusters_updated,
                    "summaries_generated": r.summaries_generated,
                    "summaries_flagged": r.summaries_flagged,
                    "clusters_published": r.clusters_published,
                    "run_time_seconds": r.run_time_seconds,
                    "errors": json.loads(r.errors) if r.errors else [],
                    "started_at": _iso(r.started_at),
                    "completed_at": _iso(r.completed_at),
                }
                for r in runs
            ]

    # ── Articles ──────────────────────────────────────────────────────

    def insert_articles(self, articles: list, now: Optional[datetime] = None) -> List[Tuple[str, bool]]:
        """Insert fetched articles, skipping ones already stored (same hash or url).

        Returns (article_id, inserted) for every input article, in order.
        """
        now = now or _utcnow()
        results: List[Tuple[str, bool]] = []
        with self.get_session() as session:
            for article in articles:
                content_hash = article.content_hash
                existing = session.execute(
                    select(ArticleModel.id).where(
                        (ArticleModel.hash == content_hash) | (ArticleModel.url == article.url)
                    )
                ).scalars().first()
                if existing:
                    results.append((existing, False))
                    continue

                published = article.published_at
                if published is not None and published.tzinfo is not None:
                    published = published.astimezone(timezone.utc).replace(tzinfo=None)

                row = ArticleModel(
                    id=_new_id(),
                    source_id=article.source_id,
                    url=article.url,
                    guid=article.guid,
                    title=article.title,
                    raw_text=article.raw_text or "",
                    language=article.language,
                    image_url=article.image_url,
                    hash=content_hash,
                    published_at=published,
                    created_at=now,
                )
                session.add(row)
                session.flush()
                results.append((row.id, True))
        return results

    def get_articles(self, article_ids: List[str]) -> List[Dict]:
        if not article_ids:
            return []
        with self.get_session() as session:
            rows = session.execute(
                select(ArticleModel).where(ArticleModel.id.in_(article_ids))
            ).scalars().all()
            return [
                {
                    "id": r.id,
                    "source_id": r.source_id,
                    "url": r.url,
                    "title": r.title,
                    "raw_text": r.raw_text or "",
                    "language": r.language or "en",
                    "cluster_id": r.cluster_id,
                    "published_at": r.published_at,
                }
                for r in rows
            ]

    # ── Clusters ──────────────────────────────────────────────────────

    def get_recent_clusters(self, now: datetime, limit: int = 200) -> List[Dict]:
        """Live (non-expired) incidents, most recently seen first."""
        with self.get_session() as session:
            rows = session.execute(
                select(ClusterModel)
                .where(ClusterModel.expires_at >= now)
                .order_by(ClusterModel.last_seen_at.desc())
                .limit(limit)
            ).scalars().all()
            return [
                {
                    "id": r.id,
                    "headline": r.headline,
                    "category": r.category,
                    "last_seen_at": r.last_seen_at,
                }
                for r in rows
            ]

    def upsert_cluster(
        self,
        assignment,
        now: datetime,
        retention_days: int = 30,
    ) -> Tuple[str, bool]:
        """Create or update an incident from a clustering decision and link its articles.

        Returns (cluster_id, created).
        """
        with self.get_session() as session:
            row = session.get(ClusterModel, assignment.cluster_id) if assignment.cluster_id else None
            created = row is None
            if created:
                if assignment.cluster_id:
                    logger.warning(
                        f"Cluster {assignment.cluster_id} not found (expired?), creating a new incident"
                    )
                cluster_id = _new_id()
                row = ClusterModel(
                    id=cluster_id,
                    slug=_slugify(assignment.headline, cluster_id),
                    headline=assignment.headline,
                    headline_translations=json.dumps(assignment.headline_translations),
                    status="draft",
                    category=assignment.category,
                    topics=json.dumps(assignment.topics),
                    first_seen_at=now,
                    last_seen_at=now,
                    created_at=now,
                    updated_at=now,
                    expires_at=now + timedelta(days=retention_days),
                )
                session.add(row)
            else:
                translations = json.loads(row.headline_translations or "{}")
                translations.update(assignment.headline_translations)
                row.headline_translations = json.dumps(translations)
                if assignment.category:
                    row.category = assignment.category
                topics = json.loads(row.topics or "[]")
                row.topics = json.dumps(list(dict.fromkeys(topics + assignment.topics)))
                row.last_seen_at = now
                row.updated_at = now
            session.flush()

            valid_ids = set(session.execute(
                select(ArticleModel.id).where(ArticleModel.id.in_(assignment.article_ids))
            ).scalars().all()) if assignment.article_ids else set()

            linked = set(session.execute(
                select(ClusterArticleModel.article_id).where(ClusterArticleModel.cluster_id == row.id)
            ).scalars().all())
            for article_id in valid_ids - linked:
                session.add(ClusterArticleModel(cluster_id=row.id, article_id=article_id, created_at=now))
            if valid_ids:
                session.execute(
                    update(ArticleModel)
                    .where(ArticleModel.id.in_(list(valid_ids)))
                    .values(cluster_id=row.id)
                    .execution_options(synchronize_session=False)
                )
            session.flush()

            row.article_count = session.execute(
                select(func.count()).select_from(ClusterArticleModel)
                .where(ClusterArticleModel.cluster_id == row.id)
            ).scalar_one()
            row.source_count = session.execute(
                select(func.count(func.distinct(ArticleModel.source_id)))
                .where(ArticleModel.cluster_id == row.id)
            ).scalar_one()
            return row.id, created

    def get_cluster_source_texts(self, cluster_id: str) -> List[str]:
        """Title + body of every article linked to the incident."""
        with self.get_session() as session:
            rows = session.execute(
                select(ArticleModel.title, ArticleModel.raw_text)
                .join(ClusterArticleModel, ClusterArticleModel.article_id == ArticleModel.id)
                .where(ClusterArticleModel.cluster_id == cluster_id)
            ).all()
            return [f"{title}\n{raw_text or ''}".strip() for title, raw_text in rows]

    def get_cluster(self, cluster_id: str) -> Optional[Dict]:
        with self.get_session() as session:
            row = session.get(ClusterModel, cluster_id)
            if row is None:
                return None
            return {
                "id": row.id,
                "headline": row.headline,
                "category": row.category,
                "status": row.status,
                "created_at": row.created_at,
                "expires_at": row.expires_at,
            }

    def publish_cluster(self, cluster_id: str, now: datetime) -> bool:
        with self.get_session() as session:
            row = session.get(ClusterModel, cluster_id)
            if row is None:
                return False
            row.status = "published"
            row.published_at = row.published_at or now
            row.updated_at = now
            return True

    # ── Summaries ─────────────────────────────────────────────────────

    def upsert_summary(
        self,
        cluster_id: str,
        lang: str,
        text: str,
        confidence: float,
        needs_review: bool,
        issues: List[str],
        verified_counts: Dict[str, Dict[str, int]],
        now: datetime,
    ) -> int:
        """Insert or replace the summary for (cluster, lang). Returns the new version."""
        with self.get_session() as session:
            row = session.execute(
                select(SummaryModel).where(
                    SummaryModel.cluster_id == cluster_id,
                    SummaryModel.lang == lang,
                )
            ).scalar_one_or_none()
            if row is None:
                row = SummaryModel(
                    id=_new_id(),
                    cluster_id=cluster_id,
                    lang=lang,
                    version=1,
                    created_at=now,
                )
                session.add(row)
            else:
                row.version = (row.version or 0) + 1
            row.text = text
            row.confidence_score = confidence
            row.needs_review = needs_review
            row.issues = json.dumps(issues)
            row.verified_counts = json.dumps(verified_counts)
            row.updated_at = now
            session.flush()
            return row.version

    def get_summaries(self, cluster_id: str) -> List[Dict]:
        with self.get_session() as session:
            rows = session.execute(
                select(SummaryModel).where(SummaryModel.cluster_id == cluster_id)
            ).scalars().all()
            return [
                {
                    "lang": r.lang,
                    "text": r.text,
                    "version": r.version,
                    "confidence_score": r.confidence_score,
                    "needs_review": r.needs_review,
                    "issues": json.loads(r.issues or "[]"),
                    "verified_counts": json.loads(r.verified_counts or "{}"),
                }
                for r in rows
            ]

    # ── Retention (explicit ordered deletes, keyed by cluster id lists) ──

    def find_cluster_ids_created_before(self, cutoff: datetime) -> List[str]:
        with self.get_session() as session:
            return list(session.execute(
                select(ClusterModel.id)
                .where(ClusterModel.created_at < cutoff)
                .order_by(ClusterModel.created_at)
            ).scalars().all())

    def delete_summaries_for_clusters(self, cluster_ids: List[str]) -> int:
        if not cluster_ids:
            return 0
        with self.get_session() as session:
            result = session.execute(
                delete(SummaryModel)
                .where(SummaryModel.cluster_id.in_(cluster_ids))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    def delete_cluster_links(self, cluster_ids: List[str]) -> int:
        if not cluster_ids:
            return 0
        with self.get_session() as session:
            result = session.execute(
                delete(ClusterArticleModel)
                .where(ClusterArticleModel.cluster_id.in_(cluster_ids))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    def unlink_articles_from_clusters(self, cluster_ids: List[str]) -> int:
        """Clear articles.cluster_id. Articles themselves are kept."""
        if not cluster_ids:
            return 0
        with self.get_session() as session:
            result = session.execute(
                update(ArticleModel)
                .where(ArticleModel.cluster_id.in_(cluster_ids))
                .values(cluster_id=None)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    def delete_clusters(self, cluster_ids: List[str]) -> int:
        if not cluster_ids:
            return 0
        with self.get_session() as session:
            result = session.execute(
                delete(ClusterModel)
                .where(ClusterModel.id.in_(cluster_ids))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    # ── Read API (published, non-expired only) ────────────────────────

    def get_published_clusters(
        self,
        lang: str,
        now: datetime,
        feed: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 20,
        home_window_hours: int = 24,
        recent_window_days: int = 30,
    ) -> List[Dict]:
        """Query published incidents with feed/category filters."""
        with self.get_session() as session:
            q = select(ClusterModel).where(
                ClusterModel.status == "published",
                ClusterModel.expires_at >= now,
            )
            if category and category not in ("home", "recent"):
                q = q.where(ClusterModel.category == category)

            if feed == "home":
                q = q.where(ClusterModel.last_seen_at >= now - timedelta(hours=home_window_hours))
                q = q.order_by(ClusterModel.last_seen_at.desc())
            elif feed == "recent":
                q = q.where(ClusterModel.created_at >= now - timedelta(days=recent_window_days))
                q = q.order_by(ClusterModel.created_at.desc())
            else:
                q = q.order_by(ClusterModel.updated_at.desc())

            clusters = session.execute(q.limit(limit)).scalars().all()
            ids = [c.id for c in clusters]
            if not ids:
                return []

            summaries = {
                s.cluster_id: s
                for s in session.execute(
                    select(SummaryModel).where(
                        SummaryModel.cluster_id.in_(ids),
                        SummaryModel.lang == lang,
                    )
                ).scalars().all()
            }
            sources: Dict[str, List[str]] = {}
            for cluster_id, source_id in session.execute(
                select(ArticleModel.cluster_id, ArticleModel.source_id)
                .where(ArticleModel.cluster_id.in_(ids))
                .distinct()
            ).all():
                sources.setdefault(cluster_id, []).append(source_id)

            return [self._cluster_payload(c, summaries.get(c.id), lang, sources.get(c.id, [])) for c in clusters]

    def get_published_cluster(self, cluster_id: str, lang: str, now: datetime) -> Optional[Dict]:
        with self.get_session() as session:
            cluster = session.execute(
                select(ClusterModel).where(
                    ClusterModel.id == cluster_id,
                    ClusterModel.status == "published",
                    ClusterModel.expires_at >= now,
                )
            ).scalar_one_or_none()
            if cluster is None:
                return None

            summary = session.execute(
                select(SummaryModel).where(
                    SummaryModel.cluster_id == cluster_id,
                    SummaryModel.lang == lang,
                )
            ).scalar_one_or_none()
            articles = session.execute(
                select(ArticleModel)
                .join(ClusterArticleModel, ClusterArticleModel.article_id == ArticleModel.id)
                .where(ClusterArticleModel.cluster_id == cluster_id)
                .order_by(ArticleModel.published_at.desc())
            ).scalars().all()

            payload = self._cluster_payload(
                cluster, summary, lang, sorted({a.source_id for a in articles}),
            )
            payload["articles"] = [
                {
                    "id": a.id,
                    "title": a.title,
                    "url": a.url,
                    "source_id": a.source_id,
                    "image_url": a.image_url,
                    "published_at": _iso(a.published_at),
                }
                for a in articles
            ]
            return payload

    def get_filter_options(self, now: datetime) -> Dict[str, Any]:
        """Distinct categories/topics and date range over published, live incidents."""
        with self.get_session() as session:
            rows = session.execute(
                select(ClusterModel.category, ClusterModel.topics, ClusterModel.created_at)
                .where(
                    ClusterModel.status == "published",
                    ClusterModel.expires_at >= now,
                )
            ).all()
            categories, topics, dates = set(), set(), []
            for category, topics_json, created_at in rows:
                if category:
                    categories.add(category)
                topics.update(t for t in json.loads(topics_json or "[]") if t)
                if created_at:
                    dates.append(created_at)
            return {
                "categories": sorted(categories),
                "topics": sorted(topics),
                "dateMin": _iso(min(dates)) if dates else None,
                "dateMax": _iso(max(dates)) if dates else None,
            }

    @staticmethod
    def _cluster_payload(cluster: ClusterModel, summary: Optional[SummaryModel], lang: str, sources: List[str]) -> Dict:
        translations = json.loads(cluster.headline_translations or "{}")
        return {
            "id": cluster.id,
            "slug": cluster.slug,
            "headline": translations.get(lang) or cluster.headline,
            "status": cluster.status,
            "category": cluster.category,
            "topics": json.loads(cluster.topics or "[]"),
            "first_seen": _iso(cluster.first_seen_at),
            "last_updated": _iso(cluster.updated_at),
            "created_at": _iso(cluster.created_at),
            "source_count": cluster.source_count,
            "summary": summary.text if summary else None,
            "summary_version": summary.version if summary else None,
            "needs_review": summary.needs_review if summary else None,
            "sources": sources,
        }


# ── Singleton ────────────────────────────────────────────────────────────────

_db: Optional[Database] = None


def get_database() -> Database:
    """Get or create database instance."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db
