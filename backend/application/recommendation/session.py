from __future__ import annotations

from domain.recommendation.models import RecommendationResult, RecommendationStatus
from domain.watchlist.errors import NoUserSelectedError


class RecommendationSession:
    """Per-view "hide this recommendation" state. Never persisted."""

    def __init__(self) -> None:
        self._hidden: set[int] = set()

    @property
    def hidden_ids(self) -> frozenset[int]:
        return frozenset(self._hidden)

    def hide(self, movie_id: int) -> None:
        self._hidden.add(int(movie_id))

    def unhide(self, movie_id: int) -> None:
        self._hidden.discard(int(movie_id))

    def clear(self) -> None:
        self._hidden.clear()

    def visible(self, result: RecommendationResult) -> RecommendationResult:
        if result.status is RecommendationStatus.NO_FAVORITES:
            return result
        items = tuple(r for r in result.items if r.movie.id not in self._hidden)
        if not items:
            return RecommendationResult(status=RecommendationStatus.EXHAUSTED)
        return RecommendationResult(status=result.status, items=items)


class RecommendationSessions:
    """In-process RecommendationSession per user; dropped on restart."""

    def __init__(self) -> None:
        self._sessions: dict[str, RecommendationSession] = {}

    def for_user(self, user_id: str) -> RecommendationSession:
        uid = str(user_id or "").strip()
        if not uid:
            raise NoUserSelectedError()
        return self._sessions.setdefault(uid, RecommendationSession())

    def reset(self, user_id: str) -> None:
        self._sessions.pop(str(user_id or "").strip(), None)
