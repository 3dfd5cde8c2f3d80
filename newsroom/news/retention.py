"""
Retention cleanup: purge incidents older than the retention horizon.

Dependents are removed explicitly, never through database cascades, in
this order (each step commits on its own):

  1. summaries          DELETE WHERE cluster_id IN (...)
  2. cluster_articles   DELETE WHERE cluster_id IN (...)
  3. articles           SET cluster_id = NULL (articles are kept)
  4. clusters           DELETE WHERE id IN (...)

If a later step fails the earlier ones are not rolled back. Every
intermediate state is safe to re-enter: the next run selects the same
incident ids (they still exist, still older than the cutoff) and repeats
the steps, which are no-ops where the work is already done.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from ..database import Database, _utcnow
from ..schemas.pipeline import RetentionReport, RetentionStep

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


class RetentionError(Exception):
    """A purge step failed. report holds the steps that completed."""

    def __init__(self, message: str, report: RetentionReport):
        super().__init__(message)
        self.report = report


class RetentionCleanup:

    def __init__(
        self,
        db: Database,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.retention_days = retention_days
        self._clock = clock

    def cutoff(self) -> datetime:
        return self._clock() - timedelta(days=self.retention_days)

    def _steps(self) -> List[Tuple[str, Callable[[List[str]], int]]]:
        return [
            ("summaries", self.db.delete_summaries_for_clusters),
            ("cluster_articles", self.db.delete_cluster_links),
            ("article_links", self.db.unlink_articles_from_clusters),
            ("clusters", self.db.delete_clusters),
        ]

    def purge_older_than(self, cutoff: Optional[datetime] = None) -> RetentionReport:
        """Delete every incident created before cutoff, dependents first."""
        cutoff = cutoff or self.cutoff()
        report = RetentionReport(cutoff=cutoff)

        cluster_ids = self.db.find_cluster_ids_created_before(cutoff)
        if not cluster_ids:
            logger.info(f"Retention: nothing older than {cutoff.isoformat()}")
            return report

        logger.info(f"Retention: purging {len(cluster_ids)} incidents older than {cutoff.isoformat()}")
        for name, step in self._steps():
            try:
                rows = step(cluster_ids)
            except Exception as e:
                report.failed_step = name
                report.error = str(e)
                logger.error(
                    f"Retention step '{name}' failed after "
                    f"{[s.name for s in report.steps]}: {e}"
                )
                raise RetentionError(f"retention step '{name}' failed: {e}", report) from e
            report.steps.append(RetentionStep(name=name, rows=rows))
            logger.info(f"Retention step '{name}': {rows} rows")

        report.deleted_count = report.steps[-1].rows
        report.deleted_ids = cluster_ids
        return report
