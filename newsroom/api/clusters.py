"""Read API router -- published incidents for the presentation layer.

Cache first, database second. Only published incidents whose expires_at
has not passed are ever returned. Feeds:
  home    last_seen_at within HOME_WINDOW_HOURS, newest activity first
  recent  created within the retention window, newest first
  (none)  all live incidents, most recently updated first
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from newsroom.api.dependencies import DB, AppSettings, Cache
from newsroom.api.schemas import (
    ClusterDetailResponse, ClusterListResponse, SearchFiltersResponse,
)
from newsroom.database import _utcnow
from newsroom.tools.response_cache import CacheKeys

logger = logging.getLogger(__name__)

router = APIRouter()


def _resolve_lang(lang: Optional[str], settings) -> str:
    if not lang:
        return settings.default_language
    if lang not in settings.get_languages():
        raise HTTPException(status_code=400, detail=f"Unsupported language: {lang}")
    return lang


@router.get("/clusters", response_model=ClusterListResponse)
async def list_clusters(
    db: DB,
    settings: AppSettings,
    cache: Cache,
    lang: Optional[str] = None,
    feed: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),
):
    lang = _resolve_lang(lang, settings)
    limit = min(limit or settings.feed_limit_default, settings.feed_limit_max)

    key = CacheKeys.clusters(lang, feed, category, limit)
    cached = cache.get(key)
    if cached is not None:
        return cached

    clusters = db.get_published_clusters(
        lang,
        now=_utcnow(),
        feed=feed,
        category=category,
        limit=limit,
        home_window_hours=settings.home_window_hours,
        recent_window_days=settings.retention_days,
    )
    payload = {"clusters": clusters, "count": len(clusters), "lang": lang}
    cache.set(key, payload, settings.cache_ttl_seconds)
    return payload


@router.get("/clusters/{cluster_id}", response_model=ClusterDetailResponse)
async def get_cluster(cluster_id: str, db: DB, settings: AppSettings, cache: Cache,
                      lang: Optional[str] = None):
    lang = _resolve_lang(lang, settings)

    key = CacheKeys.cluster_detail(cluster_id, lang)
    cached = cache.get(key)
    if cached is not None:
        return cached

    cluster = db.get_published_cluster(cluster_id, lang, now=_utcnow())
    if cluster is None:
        raise HTTPException(status_code=404, detail="Not found")

    articles = cluster.pop("articles", [])
    payload = {"cluster": cluster, "articles": articles}
    cache.set(key, payload, settings.cache_ttl_seconds)
    return payload


@router.get("/search/filters", response_model=SearchFiltersResponse)
async def search_filters(db: DB, settings: AppSettings, cache: Cache):
    """Facet values for the search UI. Rarely changes, cached for an hour."""
    key = CacheKeys.search_filters()
    cached = cache.get(key)
    if cached is not None:
        return cached

    payload = db.get_filter_options(now=_utcnow())
    cache.set(key, payload, settings.cache_filters_ttl_seconds)
    return payload
