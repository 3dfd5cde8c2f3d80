"""Retention cleanup: ordered deletes, idempotence, partial failure."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from newsroom.database import (
    ArticleModel, ClusterArticleModel, ClusterModel, SummaryModel,
)
from newsroom.news.retention import RetentionCleanup, RetentionError


def _rows(db, model, *criteria):
    with db.get_session() as session:
        rows = session.execute(select(model).where(*criteria)).scalars().all()
        session.expunge_all()
        return rows


@pytest.fixture
def cleanup(db, clock):
    return RetentionCleanup(db, retention_days=30, clock=clock)


def test_cutoff_is_thirty_days_back(cleanup, clock):
    assert cleanup.cutoff() == clock.now - timedelta(days=30)


def test_purge_removes_old_incidents_and_dependents(db, clock, cleanup, make_incident):
    old_id, old_article = make_incident(clock.now - timedelta(days=31), langs=("en", "si"))
    new_id, new_article = make_incident(clock.now - timedelta(days=2))

    report = cleanup.purge_older_than()

    assert report.deleted_count == 1
    assert report.deleted_ids == [old_id]
    assert [s.name for s in report.steps] == [
        "summaries", "cluster_articles", "article_links", "clusters",
    ]
    assert [s.rows for s in report.steps] == [2, 1, 1, 1]

    assert _rows(db, SummaryModel, SummaryModel.cluster_id == old_id) == []
    assert _rows(db, ClusterArticleModel, ClusterArticleModel.cluster_id == old_id) == []
    assert _rows(db, ArticleModel, ArticleModel.cluster_id == old_id) == []
    assert _rows(db, ClusterModel, ClusterModel.id == old_id) == []

    # Articles are unlinked, not deleted
    [article] = _rows(db, ArticleModel, ArticleModel.id == old_article)
    assert article.cluster_id is None

    # Fresh incident untouched
    assert len(_rows(db, ClusterModel, ClusterModel.id == new_id)) == 1
    assert len(_rows(db, SummaryModel, SummaryModel.cluster_id == new_id)) == 1
    [linked] = _rows(db, ArticleModel, ArticleModel.id == new_article)
    assert linked.cluster_id == new_id


def test_second_purge_is_a_noop(db, clock, cleanup, make_incident):
    make_incident(clock.now - timedelta(days=45))
    assert cleanup.purge_older_than().deleted_count == 1

    again = cleanup.purge_older_than()
    assert again.deleted_count == 0
    assert again.deleted_ids == []
    assert again.steps == []


def test_incident_exactly_at_cutoff_is_kept(db, clock, cleanup, make_incident):
    cluster_id, _ = make_incident(clock.now - timedelta(days=30))
    assert cleanup.purge_older_than().deleted_count == 0
    assert len(_rows(db, ClusterModel, ClusterModel.id == cluster_id)) == 1


def test_steps_run_in_dependency_order(db, clock, cleanup, make_incident):
    make_incident(clock.now - timedelta(days=60))
    calls = []
    for name in (
        "delete_summaries_for_clusters",
        "delete_cluster_links",
        "unlink_articles_from_clusters",
        "delete_clusters",
    ):
        original = getattr(db, name)

        def recorder(ids, _name=name, _original=original):
            calls.append(_name)
            return _original(ids)

        setattr(db, name, recorder)

    cleanup.purge_older_than()
    assert calls == [
        "delete_summaries_for_clusters",
        "delete_cluster_links",
        "unlink_articles_from_clusters",
        "delete_clusters",
    ]


def test_partial_failure_keeps_completed_steps_and_is_retried(db, clock, cleanup, make_incident):
    old_id, _ = make_incident(clock.now - timedelta(days=40))
    original = db.delete_clusters

    def broken(ids):
        raise RuntimeError("statement timeout")

    db.delete_clusters = broken
    with pytest.raises(RetentionError) as excinfo:
        cleanup.purge_older_than()

    report = excinfo.value.report
    assert report.failed_step == "clusters"
    assert [s.name for s in report.steps] == ["summaries", "cluster_articles", "article_links"]
    assert "statement timeout" in report.error

    # No rollback: dependents are gone, the incident is still there
    assert _rows(db, SummaryModel, SummaryModel.cluster_id == old_id) == []
    assert len(_rows(db, ClusterModel, ClusterModel.id == old_id)) == 1

    db.delete_clusters = original
    retry = cleanup.purge_older_than()
    assert retry.deleted_ids == [old_id]
    assert retry.deleted_count == 1
    assert [s.rows for s in retry.steps] == [0, 0, 0, 1]
