from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from application.ports.metadata_client_port import MetadataClientPort
from application.watchlist.state_manager import WatchlistStateManager
from domain.recommendation.explain import DEFAULT_EXPLAIN_THRESHOLD, explain
from domain.recommendation.models import (
    Recommendation,
    RecommendationResult,
    RecommendationStatus,
    TasteProfile,
)
from domain.recommendation.scoring import rank_candidates
from domain.recommendation.taste_profile import build_taste_profile
from domain.watchlist.entries import RatedMovie
from domain.watchlist.errors import CatalogUnavailableError
from domain.watchlist.movie import MovieDetails, MovieRef

logger = logging.getLogger(__name__)

DEFAULT_MAX_SEEDS = 5
DEFAULT_FAVORITE_THRESHOLD = 3.5


def _as_ref(movie: MovieRef) -> MovieRef:
    return movie.to_ref() if isinstance(movie, MovieDetails) else movie


class RecommendationEngine:
    """Ranked, explained recommendations seeded from a user's favorites.

    Favorites are watched movies rated at least `favorite_threshold`. Up to
    `max_seeds` of them (highest rating first, then most recently watched) seed
    the catalog's similar-movies endpoint; the union of those pools, minus
    everything the user already watched and `hidden_ids`, is scored with
    `domain.recommendation.scoring` and explained with
    `domain.recommendation.explain`.
    """

    def __init__(
        self,
        *,
        state: WatchlistStateManager,
        metadata: MetadataClientPort,
        now: Optional[Callable[[], datetime]] = None,
        max_seeds: int = DEFAULT_MAX_SEEDS,
        favorite_threshold: float = DEFAULT_FAVORITE_THRESHOLD,
        explain_threshold: float = DEFAULT_EXPLAIN_THRESHOLD,
        limit: Optional[int] = None,
    ) -> None:
        self._state = state
        self._metadata = metadata
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._max_seeds = max(1, int(max_seeds))
        self._favorite_threshold = float(favorite_threshold)
        self._explain_threshold = float(explain_threshold)
        self._limit = limit

    def _favorites(self, history: Sequence[RatedMovie]) -> list[RatedMovie]:
        return [h for h in history if h.rating is not None and h.rating >= self._favorite_threshold]

    def _seeds(self, favorites: Sequence[RatedMovie]) -> list[RatedMovie]:
        # History is newest-first and sort is stable, so equal ratings keep recency order.
        return sorted(favorites, key=lambda h: -float(h.rating or 0.0))[: self._max_seeds]

    async def _candidates(self, seeds: Sequence[RatedMovie], excluded: set[int]) -> list[MovieRef]:
        pools = await asyncio.gather(*(self._metadata.get_similar(s.movie.id) for s in seeds))
        seen: set[int] = set()
        out: list[MovieRef] = []
        for pool in pools:
            for movie in pool:
                if movie.id in excluded or movie.id in seen:
                    continue
                seen.add(movie.id)
                out.append(movie)
        return out

    async def _fetch_details(
        self, movies: Sequence[MovieRef], *, require_any: bool = True
    ) -> list[Optional[MovieRef]]:
        """Details for each movie, None where the lookup failed.

        With `require_any`, raises CatalogUnavailableError when every lookup failed.
        """
        results = await asyncio.gather(
            *(self._metadata.get_details(m.id) for m in movies), return_exceptions=True
        )
        out: list[Optional[MovieRef]] = []
        failed = 0
        for movie, result in zip(movies, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failed += 1
                logger.warning("Catalog details failed movie=%s: %s", movie.id, result)
                out.append(None)
            else:
                out.append(_as_ref(result))
        if require_any and movies and failed == len(movies):
            raise CatalogUnavailableError(f"Catalog details failed for all {failed} movie(s)")
        return out

    async def _with_details(self, movies: Iterable[MovieRef]) -> list[MovieRef]:
        """Enriched candidates; those the catalog cannot describe are dropped."""
        return [d for d in await self._fetch_details(list(movies)) if d is not None]

    async def _complete_history(self, history: Sequence[RatedMovie]) -> list[RatedMovie]:
        """Fill in genres/credits for snapshots that were stored without them.

        A favorite whose lookup fails keeps its stored snapshot.
        """
        missing = [h for h in history if not h.movie.genres or not h.movie.has_credits]
        if not missing:
            return list(history)
        details = await self._fetch_details([h.movie for h in missing], require_any=False)
        upgraded = {h.movie.id: d for h, d in zip(missing, details) if d is not None}
        return [
            RatedMovie(movie=upgraded.get(h.movie.id, h.movie), rating=h.rating, watched_at=h.watched_at)
            for h in history
        ]

    async def recommend(self, user_id: str, hidden_ids: Iterable[int] = ()) -> RecommendationResult:
        history = await self._state.get_rated_history(user_id)
        favorites = self._favorites(history)
        if not favorites:
            return RecommendationResult(status=RecommendationStatus.NO_FAVORITES)

        excluded = {h.movie.id for h in history} | {int(i) for i in hidden_ids}
        seeds = self._seeds(favorites)
        candidates = await self._candidates(seeds, excluded)
        if not candidates:
            logger.info("No recommendation candidates left for user=%s (seeds=%d)", user_id, len(seeds))
            return RecommendationResult(status=RecommendationStatus.EXHAUSTED)

        candidates = await self._with_details(candidates)
        favorites = await self._complete_history(favorites)

        ranked = rank_candidates(candidates, favorites, today=self._now().date())
        if self._limit:
            ranked = ranked[: self._limit]

        items = tuple(
            Recommendation(
                movie=movie,
                score=score,
                explanation=explain(movie, favorites, threshold=self._explain_threshold),
            )
            for movie, score in ranked
        )
        logger.debug("Recommendations user=%s seeds=%d candidates=%d", user_id, len(seeds), len(items))
        return RecommendationResult(status=RecommendationStatus.OK, items=items)

    async def taste_profile(self, user_id: str) -> TasteProfile:
        history = [h for h in await self._state.get_rated_history(user_id) if h.rating]
        return build_taste_profile(await self._complete_history(history))
