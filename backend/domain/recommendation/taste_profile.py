from __future__ import annotations

from typing import Iterable, Sequence

from domain.recommendation.models import RatedName, TasteProfile
from domain.watchlist.entries import RatedMovie

TOP_GENRES = 3
TOP_PEOPLE = 3
TOP_DECADES = 2
# Actors/directors need at least this many rated movies to count as favorites.
MIN_PERSON_MOVIES = 2


class _Tally:
    __slots__ = ("total", "count", "movies")

    def __init__(self) -> None:
        self.total = 0.0
        self.count = 0
        self.movies: list[str] = []

    def add(self, rating: float, title: str) -> None:
        self.total += rating
        self.count += 1
        self.movies.append(title)

    def to_rated_name(self, name: str) -> RatedName:
        return RatedName(
            name=name,
            average_rating=self.total / self.count,
            count=self.count,
            movies=tuple(self.movies),
        )


def _tally(pairs: Iterable[tuple[str, float, str]]) -> dict[str, _Tally]:
    out: dict[str, _Tally] = {}
    for name, rating, title in pairs:
        out.setdefault(name, _Tally()).add(rating, title)
    return out


def _top(tallies: dict[str, _Tally], *, limit: int, min_count: int = 1) -> tuple[RatedName, ...]:
    ranked = [t.to_rated_name(name) for name, t in tallies.items() if t.count >= min_count]
    ranked.sort(key=lambda r: -r.average_rating)
    return tuple(ranked[:limit])


def build_taste_profile(history: Sequence[RatedMovie]) -> TasteProfile:
    """Summarise what a user likes from their rated movies (unrated ones are ignored)."""
    rated = [h for h in history if h.rating]
    if not rated:
        return TasteProfile()

    genres = _tally(
        (g.name, float(h.rating), h.movie.title)
        for h in rated
        for g in h.movie.genres
        if g.name
    )
    actors = _tally((name, float(h.rating), h.movie.title) for h in rated for name in h.movie.cast)
    directors = _tally(
        (name.strip(), float(h.rating), h.movie.title)
        for h in rated
        if h.movie.director
        for name in h.movie.director.split(",")
        if name.strip()
    )

    decades: dict[str, int] = {}
    for h in rated:
        if h.movie.release_date is None:
            continue
        label = f"{(h.movie.release_date.year // 10) * 10}s"
        decades[label] = decades.get(label, 0) + 1
    top_decades = sorted(decades.items(), key=lambda kv: -kv[1])[:TOP_DECADES]

    return TasteProfile(
        favorite_genres=_top(genres, limit=TOP_GENRES),
        favorite_actors=_top(actors, limit=TOP_PEOPLE, min_count=MIN_PERSON_MOVIES),
        favorite_directors=_top(directors, limit=TOP_PEOPLE, min_count=MIN_PERSON_MOVIES),
        favorite_decades=tuple(top_decades),
        average_rating=sum(float(h.rating) for h in rated) / len(rated),
        total_movies=len(rated),
    )
