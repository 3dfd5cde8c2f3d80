"""HTTP interface: scheduler auth, trigger/cleanup responses, cached read API."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from newsroom.agents.deps import PipelineDeps
from newsroom.database import _utcnow
from newsroom.main import create_app
from newsroom.tools.pipeline_lock import LockManager
from newsroom.tools.response_cache import SafeCache, TTLCache

AUTH = {"Authorization": "Bearer test-secret"}


class FakeTime:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FailingIngestor:
    async def fetch(self):
        raise RuntimeError("upstream 503 from feed host")


@pytest.fixture
def cache():
    return SafeCache(TTLCache())


@pytest.fixture
def client(settings, db, cache):
    app = create_app(settings=settings, db=db, cache=cache, deps=PipelineDeps(mock_mode=True))
    return TestClient(app)


def _client_with(base_settings, db, cache, **overrides):
    custom = base_settings.model_copy(update=overrides.pop("settings", {}))
    deps = overrides.pop("deps", PipelineDeps(mock_mode=True))
    return TestClient(create_app(settings=custom, db=db, cache=cache, deps=deps))


# ════════════════════════════════════════════════════════════════════
# Authorization
# ════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("headers", [
    {},
    {"Authorization": "test-secret"},
    {"Authorization": "Basic test-secret"},
    {"Authorization": "Bearer "},
    {"Authorization": "Bearer wrong-secret"},
])
def test_scheduler_endpoints_reject_bad_credentials(client, db, headers):
    for path in ("/api/cron/run", "/api/cron/cleanup", "/api/cron/lock", "/api/pipeline/runs"):
        assert client.get(path, headers=headers).status_code == 401
    # No side effects: nothing ran, no lock taken
    assert db.get_pipeline_runs() == []
    assert db.get_lock("cron_pipeline") is None


def test_empty_secret_rejects_everything(settings, db, cache):
    client = _client_with(settings, db, cache, settings={"cron_secret": ""})
    assert client.get("/api/cron/run", headers={"Authorization": "Bearer "}).status_code == 401


# ════════════════════════════════════════════════════════════════════
# Trigger
# ════════════════════════════════════════════════════════════════════

def test_run_returns_stats(client):
    response = client.post("/api/cron/run", headers=AUTH)
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["articles_inserted"] == 8
    assert body["clusters_created"] == 3
    assert body["summaries_flagged"] == 0
    assert body["states"][-1] == "lock_released"


def test_run_skips_when_locked(client, db, settings):
    assert LockManager(db).acquire(settings.lock_name)

    response = client.get("/api/cron/run", headers=AUTH)
    assert response.status_code == 200
    assert response.json()["skipped"] is True
    assert response.json()["reason"] == "locked"


def test_run_skips_when_too_soon_unless_forced(client):
    assert client.get("/api/cron/run", headers=AUTH).json()["ok"] is True

    second = client.get("/api/cron/run", headers=AUTH).json()
    assert second == {**second, "ok": True, "skipped": True, "reason": "too_soon"}

    # Forced past the interval; every article is already stored
    forced = client.get("/api/cron/run?force=1", headers=AUTH).json()
    assert forced == {**forced, "ok": True, "skipped": True, "reason": "no_new_items"}


def test_run_failure_hides_detail_in_production(settings, db, cache):
    client = _client_with(settings, db, cache, deps=PipelineDeps(_ingestor=FailingIngestor()))

    response = client.get("/api/cron/run", headers=AUTH)
    assert response.status_code == 500
    body = response.json()
    assert body["ok"] is False
    assert body["error"] == "Internal server error"
    assert "detail" not in body
    assert "upstream" not in response.text
    assert LockManager(db).is_locked(settings.lock_name) is False


def test_run_failure_shows_detail_in_development(settings, db, cache):
    client = _client_with(
        settings, db, cache,
        settings={"environment": "development"},
        deps=PipelineDeps(_ingestor=FailingIngestor()),
    )
    body = client.get("/api/cron/run", headers=AUTH).json()
    assert body["detail"] == "upstream 503 from feed host"


def test_lock_status_and_run_history(client):
    client.get("/api/cron/run", headers=AUTH)

    lock = client.get("/api/cron/lock", headers=AUTH).json()
    assert lock == {**lock, "name": "cron_pipeline", "locked": False}

    runs = client.get("/api/pipeline/runs?limit=5", headers=AUTH).json()
    assert runs["count"] == 1
    assert runs["runs"][0]["status"] == "completed"


def test_lock_status_store_error_is_a_shaped_503(client, db):
    def broken(name):
        raise RuntimeError("database is unavailable")

    db.get_lock = broken
    response = client.get("/api/cron/lock", headers=AUTH)
    assert response.status_code == 503
    assert response.json() == {"ok": False, "error": "Lock store unavailable", "name": "cron_pipeline"}


# ════════════════════════════════════════════════════════════════════
# Cleanup
# ════════════════════════════════════════════════════════════════════

def test_cleanup_purges_and_reports_sample(client, make_incident):
    now = _utcnow()
    old_ids = [make_incident(now - timedelta(days=40 + i))[0] for i in range(12)]
    make_incident(now - timedelta(days=1))

    body = client.get("/api/cron/cleanup", headers=AUTH).json()
    assert body["ok"] is True
    assert body["message"] == "Cleanup completed"
    assert body["deleted"] == 12
    assert len(body["clusterIds"]) == 10
    assert set(body["clusterIds"]) <= set(old_ids)
    assert body["cutoffDate"]

    again = client.post("/api/cron/cleanup", headers=AUTH).json()
    assert again["deleted"] == 0
    assert again["message"] == "No clusters to delete"


def test_cleanup_invalidates_read_api_and_sweeps_expired_entries(settings, db, make_incident):
    clock = FakeTime()
    backend = TTLCache(clock=clock)
    client = _client_with(settings, db, SafeCache(backend))

    make_incident(_utcnow() - timedelta(days=40))
    backend.set("clusters:{}", {"clusters": []})
    backend.set("cluster:{\"id\":\"x\"}", {"cluster": {}})
    backend.set("search_filters:{}", {})
    backend.set("other:{}", "kept")
    backend.set("short:{}", "gone", ttl_seconds=5)
    clock.now += 10

    assert client.get("/api/cron/cleanup", headers=AUTH).json()["deleted"] == 1
    assert len(backend) == 1
    assert backend.get("other:{}") == "kept"


def test_cleanup_partial_failure_returns_500(client, db, make_incident):
    make_incident(_utcnow() - timedelta(days=40))

    def broken(ids):
        raise RuntimeError("lock timeout")

    db.delete_clusters = broken
    response = client.get("/api/cron/cleanup", headers=AUTH)
    assert response.status_code == 500
    body = response.json()
    assert body["failedStep"] == "clusters"
    assert [s["name"] for s in body["completedSteps"]] == [
        "summaries", "cluster_articles", "article_links",
    ]


# ════════════════════════════════════════════════════════════════════
# Read API
# ════════════════════════════════════════════════════════════════════

def test_read_api_after_pipeline_run(client):
    client.get("/api/cron/run", headers=AUTH)

    body = client.get("/api/clusters?lang=en").json()
    assert body["count"] == 3
    assert all(c["status"] == "published" for c in body["clusters"])
    assert all(c["summary"] for c in body["clusters"])

    sinhala = client.get("/api/clusters?lang=si&category=economy").json()
    [fuel] = sinhala["clusters"]
    assert fuel["summary"].startswith("සාරාංශය:")
    assert fuel["headline"] == "මාසික සංශෝධනයෙන් ඉන්ධන මිල අඩු කෙරේ"

    detail = client.get(f"/api/clusters/{fuel['id']}?lang=en").json()
    assert detail["cluster"]["id"] == fuel["id"]
    assert len(detail["articles"]) == 3
    assert sorted(detail["cluster"]["sources"]) == ["adaderana", "dailymirror", "newsfirst"]


def test_unsupported_language_is_rejected(client):
    assert client.get("/api/clusters?lang=fr").status_code == 400


def test_drafts_and_expired_incidents_are_hidden(client, make_incident):
    now = _utcnow()
    draft_id, _ = make_incident(now - timedelta(hours=1), published=False)
    expired_id, _ = make_incident(now - timedelta(days=31))
    live_id, _ = make_incident(now - timedelta(hours=1))

    ids = [c["id"] for c in client.get("/api/clusters").json()["clusters"]]
    assert ids == [live_id]
    assert client.get(f"/api/clusters/{draft_id}").status_code == 404
    assert client.get(f"/api/clusters/{expired_id}").status_code == 404


def test_feed_windows(client, make_incident):
    now = _utcnow()
    today_id, _ = make_incident(now - timedelta(hours=2))
    last_week_id, _ = make_incident(now - timedelta(days=7))

    home = [c["id"] for c in client.get("/api/clusters?feed=home").json()["clusters"]]
    recent = [c["id"] for c in client.get("/api/clusters?feed=recent").json()["clusters"]]
    assert home == [today_id]
    assert recent == [today_id, last_week_id]


def test_limit_is_capped(client, make_incident):
    now = _utcnow()
    for i in range(3):
        make_incident(now - timedelta(hours=i + 1))
    assert client.get("/api/clusters?limit=2").json()["count"] == 2
    assert client.get("/api/clusters?limit=500").json()["count"] == 3


def test_read_api_is_served_from_cache_until_cleared(client, cache, make_incident):
    now = _utcnow()
    make_incident(now - timedelta(hours=1))
    assert client.get("/api/clusters").json()["count"] == 1

    make_incident(now - timedelta(minutes=30))
    assert client.get("/api/clusters").json()["count"] == 1  # cached

    cache.clear()
    assert client.get("/api/clusters").json()["count"] == 2


def test_read_api_survives_cache_failure(settings, db, make_incident):
    class Broken:
        def _boom(self, *args, **kwargs):
            raise RuntimeError("cache offline")
        get = set = clear = delete_pattern = cleanup_expired = stats = _boom

    make_incident(_utcnow() - timedelta(hours=1))
    client = _client_with(settings, db, SafeCache(Broken()))
    response = client.get("/api/clusters")
    assert response.status_code == 200
    assert response.json()["count"] == 1


def test_search_filters(client, make_incident):
    now = _utcnow()
    make_incident(now - timedelta(hours=1), category="local")
    make_incident(now - timedelta(hours=2), category="sports")
    make_incident(now - timedelta(hours=3), category="politics", published=False)

    body = client.get("/api/search/filters").json()
    assert body["categories"] == ["local", "sports"]
    assert body["topics"] == ["weather"]
    assert body["dateMin"] < body["dateMax"]


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"
    assert body["pipeline"]["locked"] is False
    assert body["config"]["languages"] == ["en", "si", "ta"]
