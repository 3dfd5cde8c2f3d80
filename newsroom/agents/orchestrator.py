"""
Pipeline orchestrator: one guarded run of the news pipeline.

State machine:

    IDLE → ACQUIRING_LOCK → SKIPPED                      (locked / too soon)
                          → RUNNING → COMPLETED → LOCK_RELEASED
                          → RUNNING → SKIPPED   → LOCK_RELEASED  (no new items)
                          → RUNNING → FAILED    → LOCK_RELEASED

Flow inside RUNNING:
    ingest → store articles (hash dedup) → cluster → store incidents + links
    → summarise per language → fact-check → store summary (version bump)
    → publish → mark last successful run → clear response cache

acquire() is the only way into RUNNING, also for forced runs. The run holds
its own lock token through LockManager.holding(), which releases it on
every path out of RUNNING; a process that dies mid-run is bounded by the
lock TTL instead. A run that finds nothing new does not count as a
successful run for the too-soon check.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ..config import Settings, get_settings
from ..database import Database, _utcnow
from ..news.fact_guard import FactVerificationGuard
from ..schemas.news import (
    ClusterAssignment, ClusterRef, IncidentContext, StoredArticle,
)
from ..schemas.pipeline import PipelineOutcome, PipelineStats, RunState, SkipReason
from ..tools.pipeline_lock import LockManager
from ..tools.response_cache import SafeCache
from .deps import PipelineDeps

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Runs the pipeline under the distributed lock and reports stats."""

    def __init__(
        self,
        db: Database,
        lock_manager: LockManager,
        guard: FactVerificationGuard,
        cache: SafeCache,
        deps: PipelineDeps,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.locks = lock_manager
        self.guard = guard
        self.cache = cache
        self.deps = deps
        self.settings = settings or get_settings()
        self._clock = clock

    # ── Entry point ──────────────────────────────────────────────────

    async def run(self, force: bool = False, trigger: str = "api") -> PipelineOutcome:
        started = self._clock()
        run_id = f"{started.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"
        lock_name = self.settings.lock_name
        outcome = PipelineOutcome(run_id=run_id, started_at=started)
        self._enter(outcome, RunState.IDLE)

        logger.info(f"Pipeline trigger: run={run_id} trigger={trigger} force={force}")
        self._enter(outcome, RunState.ACQUIRING_LOCK)

        if not force:
            if self.locks.is_locked(lock_name):
                return self._skip(outcome, SkipReason.LOCKED, trigger)
            if self._ran_too_recently(started):
                return self._skip(outcome, SkipReason.TOO_SOON, trigger)

        with self.locks.holding(lock_name, self.settings.lock_ttl_minutes) as token:
            if token is None:
                return self._skip(outcome, SkipReason.LOCKED, trigger)

            stats = PipelineStats()
            outcome.stats = stats
            self._enter(outcome, RunState.RUNNING)
            self._record_start(run_id, trigger, force, started)
            try:
                had_new_items = await self._execute(stats)
                completed = self._clock()
                outcome.completed_at = completed
                if not had_new_items:
                    outcome.skipped = True
                    outcome.reason = SkipReason.NO_NEW_ITEMS
                    self._enter(outcome, RunState.SKIPPED)
                    logger.info(f"Pipeline skipped: run={run_id} reason=no_new_items")
                else:
                    self.db.set_last_successful_run(completed)
                    self.cache.clear()
                    self._enter(outcome, RunState.COMPLETED)
                    logger.info(
                        f"Pipeline completed: run={run_id} fetched={stats.articles_fetched} "
                        f"inserted={stats.articles_inserted} created={stats.clusters_created} "
                        f"updated={stats.clusters_updated} summaries={stats.summaries_generated} "
                        f"flagged={stats.summaries_flagged} published={stats.clusters_published}"
                    )
            except Exception as e:
                logger.exception(f"Pipeline failed: run={run_id}: {e}")
                outcome.ok = False
                outcome.error = str(e)
                outcome.completed_at = self._clock()
                self._enter(outcome, RunState.FAILED)

        self._enter(outcome, RunState.LOCK_RELEASED)
        self._record_finish(outcome)
        return outcome

    # ── Stages ───────────────────────────────────────────────────────

    async def _execute(self, stats: PipelineStats) -> bool:
        """Run every stage. False when the fetch brought nothing new."""
        now = self._clock()

        fetched = await self.deps.ingestor.fetch()
        stats.articles_fetched = len(fetched)
        logger.info(f"Ingest: {len(fetched)} articles fetched")
        if not fetched:
            return False

        inserted = self.db.insert_articles(fetched, now=now)
        new_ids = [article_id for article_id, is_new in inserted if is_new]
        stats.articles_inserted = len(new_ids)
        logger.info(f"Store: {len(new_ids)} new, {len(inserted) - len(new_ids)} duplicates")
        if not new_ids:
            return False

        articles = [StoredArticle(**row) for row in self.db.get_articles(new_ids)]
        existing = [ClusterRef(**row) for row in self.db.get_recent_clusters(now)]
        assignments: List[ClusterAssignment] = await self.deps.clusterer.assign(articles, existing)

        touched: List[str] = []
        for assignment in assignments:
            cluster_id, created = self.db.upsert_cluster(
                assignment, now, retention_days=self.settings.retention_days,
            )
            if created:
                stats.clusters_created += 1
            else:
                stats.clusters_updated += 1
            if cluster_id not in touched:
                touched.append(cluster_id)
        logger.info(
            f"Cluster: {stats.clusters_created} created, {stats.clusters_updated} updated"
        )

        languages = self.settings.get_languages()
        for cluster_id in touched:
            await self._summarize_and_publish(cluster_id, languages, stats, now)
        return True

    async def _summarize_and_publish(
        self, cluster_id: str, languages: List[str], stats: PipelineStats, now: datetime,
    ):
        cluster = self.db.get_cluster(cluster_id)
        source_texts = self.db.get_cluster_source_texts(cluster_id)
        context = IncidentContext(
            cluster_id=cluster_id,
            headline=cluster["headline"],
            category=cluster["category"],
            source_texts=source_texts,
            languages=languages,
        )
        candidates = await self.deps.summarizer.summarize(context)

        stored, flagged = 0, 0
        for candidate in candidates:
            if candidate.lang not in languages:
                stats.errors.append({
                    "stage": "summarize",
                    "message": f"{cluster_id}: unsupported language '{candidate.lang}' skipped",
                })
                continue
            if not candidate.text.strip():
                stats.errors.append({
                    "stage": "summarize",
                    "message": f"{cluster_id}: empty {candidate.lang} summary skipped",
                })
                continue

            # Verification always completes before the summary can be published
            result = self.guard.validate(candidate.text, source_texts, lang=candidate.lang)
            version = self.db.upsert_summary(
                cluster_id,
                candidate.lang,
                candidate.text,
                confidence=result.confidence,
                needs_review=result.needs_review,
                issues=result.issues,
                verified_counts={k: v.model_dump() for k, v in result.verified_counts.items()},
                now=now,
            )
            stored += 1
            stats.summaries_generated += 1
            if result.needs_review:
                flagged += 1
                stats.summaries_flagged += 1
                logger.warning(
                    f"Summary {cluster_id}/{candidate.lang} v{version} needs review: "
                    f"{result.summary()} {result.issues[:3]}"
                )

        if not stored:
            logger.info(f"Incident {cluster_id} has no summary yet, left in draft")
            return
        if flagged and self.settings.fact_check_blocks_publication:
            logger.info(f"Incident {cluster_id} held in draft: {flagged} flagged summaries")
            return
        if self.db.publish_cluster(cluster_id, now):
            stats.clusters_published += 1

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _enter(outcome: PipelineOutcome, state: RunState):
        outcome.state = state
        outcome.states.append(state)

    def _ran_too_recently(self, now: datetime) -> bool:
        try:
            last = self.db.get_last_successful_run()
        except Exception as e:
            logger.warning(f"Could not read last successful run, continuing: {e}")
            return False
        if last is None:
            return False
        return now - last < timedelta(minutes=self.settings.min_run_interval_minutes)

    def _skip(self, outcome: PipelineOutcome, reason: SkipReason, trigger: str) -> PipelineOutcome:
        outcome.skipped = True
        outcome.reason = reason
        outcome.completed_at = self._clock()
        self._enter(outcome, RunState.SKIPPED)
        logger.info(f"Pipeline skipped: run={outcome.run_id} reason={reason.value}")
        try:
            self.db.save_pipeline_run({
                "run_id": outcome.run_id,
                "status": "skipped",
                "trigger": trigger,
                "errors": [{"stage": "lock", "message": reason.value}],
                "started_at": outcome.started_at,
                "completed_at": outcome.completed_at,
            })
        except Exception as e:
            logger.warning(f"Failed to record skipped run: {e}")
        return outcome

    def _record_start(self, run_id: str, trigger: str, force: bool, started: datetime):
        try:
            self.db.save_pipeline_run({
                "run_id": run_id,
                "status": "running",
                "trigger": trigger,
                "forced": force,
                "started_at": started,
            })
        except Exception as e:
            logger.warning(f"Failed to record run start: {e}")

    def _record_finish(self, outcome: PipelineOutcome):
        stats = outcome.stats or PipelineStats()
        updates: Dict = stats.model_dump(exclude={"errors"})
        errors = list(stats.errors)
        if outcome.error:
            errors.append({"stage": "pipeline", "message": outcome.error})
        updates.update({
            "status": "failed" if not outcome.ok else ("skipped" if outcome.skipped else "completed"),
            "errors": errors,
            "completed_at": outcome.completed_at,
            "run_time_seconds": (
                (outcome.completed_at - outcome.started_at).total_seconds()
                if outcome.completed_at and outcome.started_at else 0
            ),
        })
        try:
            self.db.update_pipeline_run(outcome.run_id, updates)
        except Exception as e:
            logger.warning(f"Failed to record run result: {e}")
