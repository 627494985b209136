from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable


class QueryKey(str, enum.Enum):
    """Aggregate reads a client may have cached."""

    PERSONAL_LIST = "personal_list"
    PERSONAL_WATCHLIST = "personal_watchlist"
    SHARED_WATCHLIST = "shared_watchlist"
    WATCHED_MOVIES = "watched_movies"
    RATINGS = "ratings"
    # Every user's want-to-see votes (feeds the shared list averages).
    WANT_TO_SEE_RATINGS = "want_to_see_ratings"


@dataclass(frozen=True)
class Invalidation:
    """Emitted after a successful mutation: `keys` are now stale.

    `user_id` is the acting user. SHARED_WATCHLIST, WANT_TO_SEE_RATINGS and the
    group watched feed are global, so they are stale for every user.
    """

    user_id: str
    operation: str
    keys: frozenset[QueryKey]


InvalidationCallback = Callable[[Invalidation], None]


_K = QueryKey

MUTATION_KEYS: dict[str, frozenset[QueryKey]] = {
    "add_to_personal_list": frozenset({_K.PERSONAL_LIST}),
    "add_to_personal_watchlist": frozenset({_K.PERSONAL_WATCHLIST, _K.WANT_TO_SEE_RATINGS, _K.SHARED_WATCHLIST}),
    "add_to_shared": frozenset({_K.SHARED_WATCHLIST}),
    "rate_movie": frozenset({_K.RATINGS, _K.WATCHED_MOVIES, _K.PERSONAL_LIST}),
    "rate_want_to_see": frozenset({_K.PERSONAL_WATCHLIST, _K.WANT_TO_SEE_RATINGS, _K.SHARED_WATCHLIST}),
    "schedule_movie": frozenset({_K.SHARED_WATCHLIST}),
    "toggle_watched": frozenset({_K.PERSONAL_LIST, _K.WATCHED_MOVIES}),
    "remove_from_personal": frozenset({_K.PERSONAL_LIST, _K.RATINGS, _K.WATCHED_MOVIES}),
    "remove_from_personal_watchlist": frozenset(
        {_K.PERSONAL_WATCHLIST, _K.WANT_TO_SEE_RATINGS, _K.SHARED_WATCHLIST}
    ),
    "remove_from_shared": frozenset({_K.SHARED_WATCHLIST, _K.PERSONAL_WATCHLIST, _K.WANT_TO_SEE_RATINGS}),
}
