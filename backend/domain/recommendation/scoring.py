from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from domain.watchlist.entries import RatedMovie
from domain.watchlist.movie import MovieRef

GENRE_WEIGHT = 0.2
MULTI_GENRE_BONUS = 0.2
DIRECTOR_WEIGHT = 0.3
ACTOR_WEIGHT = 0.2
RECENCY_WINDOW_MONTHS = 12.0
DAYS_PER_MONTH = 30.0


def months_since_release(release_date: Optional[date], *, today: date) -> float:
    """Whole-day distance to `today` in 30-day months; negative for future releases, 0 when unknown."""
    if release_date is None:
        return 0.0
    return (today - release_date).days / DAYS_PER_MONTH


def recency_bonus(release_date: Optional[date], *, today: date) -> float:
    return max(0.0, 1.0 - months_since_release(release_date, today=today) / RECENCY_WINDOW_MONTHS)


def shared_genre_count(candidate: MovieRef, other: MovieRef) -> int:
    return len(candidate.genre_ids & other.genre_ids)


def shares_director(candidate: MovieRef, other: MovieRef) -> bool:
    return bool(candidate.director) and candidate.director == other.director


def shared_cast(candidate: MovieRef, other: MovieRef) -> list[str]:
    """Cast members of `candidate` (billing order) who also appear in `other`."""
    theirs = set(other.cast)
    return [name for name in candidate.cast if name in theirs]


def score_candidate(candidate: MovieRef, favorites: Sequence[RatedMovie], *, today: date) -> float:
    """Weighted taste score of one candidate against the user's favorites.

    - genre affinity: every favorite sharing a genre adds
      rating * 0.2 * (1 + recency_bonus(favorite)); sharing more than one
      genre adds a flat 0.2 per shared genre on top.
    - director: the first favorite with the same director adds rating * 0.3.
    - actors: every favorite sharing a cast member adds rating * 0.2.

    The total is scaled by the candidate's community rating (0-10) when the
    catalog has a non-zero value for it.
    """
    score = 0.0

    for fav in favorites:
        rating = fav.rating or 0.0
        matching = shared_genre_count(candidate, fav.movie)
        if matching == 0:
            continue
        score += rating * GENRE_WEIGHT * (1.0 + recency_bonus(fav.movie.release_date, today=today))
        if matching > 1:
            score += MULTI_GENRE_BONUS * matching

    director_match = next((f for f in favorites if shares_director(candidate, f.movie)), None)
    if director_match is not None:
        score += (director_match.rating or 0.0) * DIRECTOR_WEIGHT

    for fav in favorites:
        if shared_cast(candidate, fav.movie):
            score += (fav.rating or 0.0) * ACTOR_WEIGHT

    if candidate.community_rating:
        score *= candidate.community_rating / 10.0

    return score


def rank_candidates(
    candidates: Sequence[MovieRef],
    favorites: Sequence[RatedMovie],
    *,
    today: date,
) -> list[tuple[MovieRef, float]]:
    """Score and sort: score desc, then popularity desc; otherwise input order (sort is stable)."""
    scored = [(m, score_candidate(m, favorites, today=today)) for m in candidates]
    scored.sort(key=lambda pair: (-pair[1], -(pair[0].popularity or 0.0)))
    return scored
