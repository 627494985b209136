from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache

from application.ports.metadata_client_port import MetadataClientPort
from application.ports.watchlist_store_port import WatchlistStorePort
from application.recommendation.engine import RecommendationEngine
from application.recommendation.session import RecommendationSessions
from application.watchlist.invalidation import Invalidation
from application.watchlist.state_manager import WatchlistStateManager
from config.settings import (
    RECOMMENDATION_EXPLAIN_THRESHOLD,
    RECOMMENDATION_FAVORITE_THRESHOLD,
    RECOMMENDATION_LIMIT,
    RECOMMENDATION_MAX_SEEDS,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _build_catalog_cache():
    from infrastructure.cache.catalog_cache import (
        DETAILS,
        EXTERNAL_RATINGS,
        GENRES,
        SEARCH,
        SIMILAR,
        CatalogCache,
    )
    from infrastructure.config.settings import (
        CATALOG_CACHE_DETAILS_TTL_S,
        CATALOG_CACHE_ENABLE,
        CATALOG_CACHE_EXTERNAL_TTL_S,
        CATALOG_CACHE_GENRES_TTL_S,
        CATALOG_CACHE_MAX_SIZE,
        CATALOG_CACHE_SEARCH_TTL_S,
        CATALOG_CACHE_SIMILAR_TTL_S,
    )

    if not CATALOG_CACHE_ENABLE:
        return None
    return CatalogCache(
        ttls={
            DETAILS: timedelta(seconds=CATALOG_CACHE_DETAILS_TTL_S),
            SEARCH: timedelta(seconds=CATALOG_CACHE_SEARCH_TTL_S),
            SIMILAR: timedelta(seconds=CATALOG_CACHE_SIMILAR_TTL_S),
            GENRES: timedelta(seconds=CATALOG_CACHE_GENRES_TTL_S),
            EXTERNAL_RATINGS: timedelta(seconds=CATALOG_CACHE_EXTERNAL_TTL_S),
        },
        max_size=CATALOG_CACHE_MAX_SIZE,
    )


@lru_cache(maxsize=1)
def _build_watchlist_store() -> WatchlistStorePort:
    from config.database import get_postgres_dsn
    from infrastructure.config.settings import (
        POSTGRES_COMMAND_TIMEOUT_S,
        POSTGRES_POOL_MAX_SIZE,
        POSTGRES_POOL_MIN_SIZE,
    )
    from infrastructure.persistence.postgres.watchlist_store import (
        InMemoryWatchlistStore,
        PostgresWatchlistStore,
    )

    dsn = get_postgres_dsn()
    if dsn:
        return PostgresWatchlistStore(
            dsn=dsn,
            min_size=POSTGRES_POOL_MIN_SIZE,
            max_size=POSTGRES_POOL_MAX_SIZE,
            command_timeout=POSTGRES_COMMAND_TIMEOUT_S,
        )
    logger.info("POSTGRES_DSN not configured; using in-memory watchlist store")
    return InMemoryWatchlistStore()


@lru_cache(maxsize=1)
def _build_metadata_client() -> MetadataClientPort:
    from infrastructure.enrichment.tmdb_client import TMDBClient

    return TMDBClient(cache=_build_catalog_cache())


def _log_invalidation(event: Invalidation) -> None:
    logger.debug(
        "invalidate op=%s user=%s keys=%s",
        event.operation,
        event.user_id,
        sorted(k.value for k in event.keys),
    )


@lru_cache(maxsize=1)
def _build_state_manager() -> WatchlistStateManager:
    manager = WatchlistStateManager(store=_build_watchlist_store(), metadata=_build_metadata_client())
    manager.subscribe(_log_invalidation)
    return manager


@lru_cache(maxsize=1)
def _build_recommendation_engine() -> RecommendationEngine:
    return RecommendationEngine(
        state=_build_state_manager(),
        metadata=_build_metadata_client(),
        max_seeds=RECOMMENDATION_MAX_SEEDS,
        favorite_threshold=RECOMMENDATION_FAVORITE_THRESHOLD,
        explain_threshold=RECOMMENDATION_EXPLAIN_THRESHOLD,
        limit=RECOMMENDATION_LIMIT or None,
    )


@lru_cache(maxsize=1)
def _build_recommendation_sessions() -> RecommendationSessions:
    return RecommendationSessions()


def get_state_manager() -> WatchlistStateManager:
    return _build_state_manager()


def get_recommendation_engine() -> RecommendationEngine:
    return _build_recommendation_engine()


def get_metadata_client() -> MetadataClientPort:
    return _build_metadata_client()


def get_recommendation_sessions() -> RecommendationSessions:
    return _build_recommendation_sessions()


async def shutdown_dependencies() -> None:
    """Best-effort shutdown hooks for long-lived adapters (connection pools, HTTP sessions)."""
    if _build_watchlist_store.cache_info().currsize:
        await _build_watchlist_store().close()
    if _build_metadata_client.cache_info().currsize:
        await _build_metadata_client().close()
