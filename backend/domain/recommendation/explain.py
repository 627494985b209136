from __future__ import annotations

from typing import Sequence

from domain.recommendation.models import Explanation, ExplanationKind
from domain.recommendation.scoring import shared_cast, shares_director
from domain.watchlist.entries import RatedMovie
from domain.watchlist.movie import MovieRef

DEFAULT_EXPLAIN_THRESHOLD = 4.0
FALLBACK_TEXT = "Based on your watching history and ratings"


def _loved(history: Sequence[RatedMovie], threshold: float) -> list[RatedMovie]:
    return [h for h in history if h.rating is not None and h.rating >= threshold]


def explain(
    candidate: MovieRef,
    history: Sequence[RatedMovie],
    *,
    threshold: float = DEFAULT_EXPLAIN_THRESHOLD,
) -> Explanation:
    """Pick the single best reason to show for a recommendation.

    Priority: shared genre, then same director, then shared cast member, each
    taken from the first movie in `history` rated at least `threshold`.
    """
    loved = _loved(history, threshold)

    for h in loved:
        their_ids = h.movie.genre_ids
        genres = [g for g in candidate.genres if g.id in their_ids]
        if not genres:
            continue
        names = " and ".join((g.name or str(g.id)).lower() for g in genres)
        suffix = "" if len(genres) == 1 else "s"
        return Explanation(
            kind=ExplanationKind.GENRE,
            text=f"Because you rated {h.movie.title} highly, which shares the {names} genre{suffix}",
        )

    for h in loved:
        if shares_director(candidate, h.movie):
            return Explanation(
                kind=ExplanationKind.DIRECTOR,
                text=f"From {candidate.director}, director of {h.movie.title} which you rated highly",
            )

    for h in loved:
        common = shared_cast(candidate, h.movie)
        if common:
            return Explanation(
                kind=ExplanationKind.ACTOR,
                text=f"Starring {common[0]}, who you enjoyed in {h.movie.title}",
            )

    return Explanation(kind=ExplanationKind.SIMILAR, text=FALLBACK_TEXT)
