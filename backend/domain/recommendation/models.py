from __future__ import annotations

import enum
from dataclasses import dataclass

from domain.watchlist.movie import MovieRef


class RecommendationStatus(str, enum.Enum):
    OK = "ok"
    # The user has not rated anything >= the favorite threshold yet.
    NO_FAVORITES = "no_favorites"
    # Favorites exist, but every candidate was watched, a favorite, or hidden.
    EXHAUSTED = "exhausted"


class ExplanationKind(str, enum.Enum):
    GENRE = "genre"
    DIRECTOR = "director"
    ACTOR = "actor"
    SIMILAR = "similar"


@dataclass(frozen=True)
class Explanation:
    kind: ExplanationKind
    text: str


@dataclass(frozen=True)
class Recommendation:
    movie: MovieRef
    score: float
    explanation: Explanation


@dataclass(frozen=True)
class RecommendationResult:
    status: RecommendationStatus
    items: tuple[Recommendation, ...] = ()

    @property
    def movie_ids(self) -> list[int]:
        return [r.movie.id for r in self.items]


@dataclass(frozen=True)
class RatedName:
    """A genre/actor/director with the average rating of the movies it appears in."""

    name: str
    average_rating: float
    count: int
    movies: tuple[str, ...] = ()


@dataclass(frozen=True)
class TasteProfile:
    favorite_genres: tuple[RatedName, ...] = ()
    favorite_actors: tuple[RatedName, ...] = ()
    favorite_directors: tuple[RatedName, ...] = ()
    # (decade label, count), e.g. ("1990s", 4)
    favorite_decades: tuple[tuple[str, int], ...] = ()
    average_rating: float = 0.0
    total_movies: int = 0
