from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

from application.ports.metadata_client_port import MetadataClientPort
from application.ports.watchlist_store_port import Table, WatchlistStorePort
from application.watchlist.invalidation import MUTATION_KEYS, Invalidation, InvalidationCallback
from domain.watchlist.entries import (
    Activity,
    ActivityKind,
    EntryKind,
    PersonalEntry,
    PersonalListRow,
    RatedMovie,
    Rating,
    ScheduleMonth,
    SharedEntry,
    SharedWatchlistRow,
    WatchedEntry,
    WatchedRow,
)
from domain.watchlist.errors import (
    DuplicateEntryError,
    MovieNotFoundError,
    NoUserSelectedError,
    PartialRemovalFailureError,
)
from domain.watchlist.movie import MovieDetails, MovieRef
from domain.watchlist.rules import (
    DEFAULT_WANT_TO_SEE,
    normalize_schedule_date,
    normalize_star_rating,
    normalize_want_to_see,
)

logger = logging.getLogger(__name__)

WATCHED_FEED_LIMIT = 50

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_user(user_id: Optional[str]) -> str:
    uid = str(user_id or "").strip()
    if not uid:
        raise NoUserSelectedError()
    return uid


def _newest_first(items: Iterable[Any], key: Callable[[Any], Optional[datetime]]) -> list[Any]:
    return sorted(items, key=lambda x: key(x) or _EPOCH, reverse=True)


CascadeStep = tuple[str, Table, Mapping[str, Any]]


class WatchlistStateManager:
    """Consistency rules across personal, shared, watched and rating collections.

    The store enforces no foreign keys; every cross-collection rule (cascades,
    snapshot copies, per-kind uniqueness pre-checks) lives here. After each
    successful mutation the subscribed callbacks receive an `Invalidation`
    naming the aggregate reads that are now stale.
    """

    def __init__(
        self,
        *,
        store: WatchlistStorePort,
        metadata: Optional[MetadataClientPort] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._metadata = metadata
        self._now = now or _utcnow
        self._subscribers: list[InvalidationCallback] = []

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def subscribe(self, callback: InvalidationCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def _notify(self, operation: str, user_id: str) -> None:
        event = Invalidation(user_id=user_id, operation=operation, keys=MUTATION_KEYS[operation])
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as exc:
                logger.warning("Invalidation callback failed op=%s user=%s: %s", operation, user_id, exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _snapshot(self, movie: MovieRef, enrich: bool) -> MovieRef:
        if enrich and self._metadata is not None:
            movie = await self._metadata.get_details(movie.id)
        if isinstance(movie, MovieDetails):
            return movie.to_ref()
        return movie

    async def _personal_rows(self, user_id: str, movie_id: int) -> dict[EntryKind, dict[str, Any]]:
        rows = await self._store.select(Table.PERSONAL_ENTRIES, {"user_id": user_id, "movie_id": movie_id})
        return {EntryKind(r["kind"]): r for r in rows}

    async def _run_cascade(self, movie_id: int, steps: Sequence[CascadeStep]) -> dict[str, int]:
        """Delete every step atomically when the store can, else best-effort with aggregated failures."""
        removed: dict[str, int] = {}
        if self._store.supports_transactions:
            step = "transaction"
            try:
                async with self._store.transaction():
                    for step, table, match in steps:
                        removed[step] = await self._store.delete(table, match)
            except Exception as exc:
                logger.warning("Removal rolled back movie=%s failed=%s: %s", movie_id, step, exc)
                raise PartialRemovalFailureError(movie_id, [(step, exc)]) from exc
            return removed

        failures: list[tuple[str, BaseException]] = []
        for name, table, match in steps:
            try:
                removed[name] = await self._store.delete(table, match)
            except Exception as exc:
                failures.append((name, exc))
        if failures:
            logger.warning(
                "Partial removal movie=%s failed=%s removed=%s",
                movie_id,
                [name for name, _ in failures],
                removed,
            )
            raise PartialRemovalFailureError(movie_id, failures)
        return removed

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_to_personal_list(
        self, user_id: str, movie: MovieRef, *, enrich: bool = False
    ) -> PersonalEntry:
        uid = _require_user(user_id)
        movie = await self._snapshot(movie, enrich)
        if EntryKind.LIST in await self._personal_rows(uid, movie.id):
            raise DuplicateEntryError(f"Movie {movie.id} is already in your list")

        entry = PersonalEntry(user_id=uid, movie_id=movie.id, movie=movie, added_at=self._now())
        row = await self._store.insert(Table.PERSONAL_ENTRIES, entry.to_row())
        self._notify("add_to_personal_list", uid)
        return PersonalEntry.from_row(row)

    async def add_to_personal_watchlist(
        self, user_id: str, movie: MovieRef, *, enrich: bool = False
    ) -> PersonalEntry:
        uid = _require_user(user_id)
        movie = await self._snapshot(movie, enrich)
        if EntryKind.WATCHLIST in await self._personal_rows(uid, movie.id):
            raise DuplicateEntryError(f"Movie {movie.id} is already in your watchlist")

        entry = PersonalEntry(
            user_id=uid,
            movie_id=movie.id,
            movie=movie,
            kind=EntryKind.WATCHLIST,
            want_to_see_rating=DEFAULT_WANT_TO_SEE,
            added_at=self._now(),
        )
        row = await self._store.insert(Table.PERSONAL_ENTRIES, entry.to_row())
        self._notify("add_to_personal_watchlist", uid)
        return PersonalEntry.from_row(row)

    async def add_to_shared(self, user_id: str, movie: MovieRef, *, enrich: bool = False) -> SharedEntry:
        uid = _require_user(user_id)
        movie = await self._snapshot(movie, enrich)
        # First writer wins; a second add never overwrites.
        if await self._store.select(Table.SHARED_ENTRIES, {"movie_id": movie.id}):
            raise DuplicateEntryError(f"Movie {movie.id} is already in the shared watchlist")

        entry = SharedEntry(movie_id=movie.id, movie=movie, added_by=uid, added_at=self._now())
        row = await self._store.insert(Table.SHARED_ENTRIES, entry.to_row())
        self._notify("add_to_shared", uid)
        return SharedEntry.from_row(row)

    async def rate_movie(self, user_id: str, movie_id: int, rating: float) -> Rating:
        uid = _require_user(user_id)
        value = normalize_star_rating(rating)
        match = {"user_id": uid, "movie_id": int(movie_id)}
        patch = {"rating": value, "rated_at": self._now()}

        rows = await self._store.update(Table.RATINGS, match, patch)
        if not rows:
            try:
                rows = [await self._store.insert(Table.RATINGS, {**match, **patch})]
            except DuplicateEntryError:
                # Lost an insert race; the row exists now.
                rows = await self._store.update(Table.RATINGS, match, patch)

        self._notify("rate_movie", uid)
        return Rating.from_row(rows[0])

    async def rate_want_to_see(self, user_id: str, movie_id: int, rating: float) -> PersonalEntry:
        uid = _require_user(user_id)
        movie_id = int(movie_id)
        value = normalize_want_to_see(rating)
        existing = await self._personal_rows(uid, movie_id)

        if EntryKind.WATCHLIST in existing:
            rows = await self._store.update(
                Table.PERSONAL_ENTRIES,
                {"user_id": uid, "movie_id": movie_id, "kind": EntryKind.WATCHLIST.value},
                {"want_to_see_rating": value},
            )
            self._notify("rate_want_to_see", uid)
            return PersonalEntry.from_row(rows[0])

        if EntryKind.LIST in existing:
            movie = PersonalEntry.from_row(existing[EntryKind.LIST]).movie
        else:
            shared = await self._store.select(Table.SHARED_ENTRIES, {"movie_id": movie_id})
            if not shared:
                raise MovieNotFoundError("movie not found in shared watchlist")
            movie = SharedEntry.from_row(shared[0]).movie

        entry = PersonalEntry(
            user_id=uid,
            movie_id=movie_id,
            movie=movie,
            kind=EntryKind.WATCHLIST,
            want_to_see_rating=value,
            added_at=self._now(),
        )
        row = await self._store.insert(Table.PERSONAL_ENTRIES, entry.to_row())
        self._notify("rate_want_to_see", uid)
        return PersonalEntry.from_row(row)

    async def schedule_movie(
        self,
        acting_user_id: str,
        movie_id: int,
        when: Union[str, date, datetime, None],
    ) -> Optional[SharedEntry]:
        """Set (or clear, with None) the shared viewing date; unknown movies are a no-op."""
        uid = _require_user(acting_user_id)
        scheduled_for = None if when is None else normalize_schedule_date(when)
        rows = await self._store.update(
            Table.SHARED_ENTRIES,
            {"movie_id": int(movie_id)},
            {"scheduled_for": scheduled_for},
        )
        if not rows:
            logger.info("schedule_movie: movie %s is not in the shared watchlist", movie_id)
            return None
        self._notify("schedule_movie", uid)
        return SharedEntry.from_row(rows[0])

    async def toggle_watched(self, user_id: str, movie: MovieRef) -> bool:
        """Flip the watched state and return the new one. Ratings survive un-watching."""
        uid = _require_user(user_id)
        match = {"user_id": uid, "movie_id": movie.id}
        if await self._store.select(Table.WATCHED_ENTRIES, match):
            await self._store.delete(Table.WATCHED_ENTRIES, match)
            watched = False
        else:
            snapshot = movie.to_ref() if isinstance(movie, MovieDetails) else movie
            entry = WatchedEntry(user_id=uid, movie_id=movie.id, movie=snapshot, watched_at=self._now())
            await self._store.insert(Table.WATCHED_ENTRIES, entry.to_row())
            watched = True
        self._notify("toggle_watched", uid)
        return watched

    async def remove_from_personal(self, user_id: str, movie_id: int) -> dict[str, int]:
        """Remove a movie from the personal list with its rating and watched mark.

        The user's want-to-see vote (WATCHLIST entry) is left alone.
        """
        uid = _require_user(user_id)
        movie_id = int(movie_id)
        match = {"user_id": uid, "movie_id": movie_id}
        removed = await self._run_cascade(
            movie_id,
            [
                ("personal_entry", Table.PERSONAL_ENTRIES, {**match, "kind": EntryKind.LIST.value}),
                ("rating", Table.RATINGS, match),
                ("watched_entry", Table.WATCHED_ENTRIES, match),
            ],
        )
        logger.info("Removed movie %s from personal list of %s: %s", movie_id, uid, removed)
        self._notify("remove_from_personal", uid)
        return removed

    async def remove_from_personal_watchlist(self, user_id: str, movie_id: int) -> bool:
        uid = _require_user(user_id)
        deleted = await self._store.delete(
            Table.PERSONAL_ENTRIES,
            {"user_id": uid, "movie_id": int(movie_id), "kind": EntryKind.WATCHLIST.value},
        )
        if deleted:
            self._notify("remove_from_personal_watchlist", uid)
        return bool(deleted)

    async def remove_from_shared(self, acting_user_id: str, movie_id: int) -> dict[str, int]:
        """Remove a shared movie and every user's want-to-see vote for it."""
        uid = _require_user(acting_user_id)
        movie_id = int(movie_id)
        removed = await self._run_cascade(
            movie_id,
            [
                ("shared_entry", Table.SHARED_ENTRIES, {"movie_id": movie_id}),
                (
                    "watchlist_entries",
                    Table.PERSONAL_ENTRIES,
                    {"movie_id": movie_id, "kind": EntryKind.WATCHLIST.value},
                ),
            ],
        )
        logger.info("Removed movie %s from shared watchlist (by %s): %s", movie_id, uid, removed)
        self._notify("remove_from_shared", uid)
        return removed

    # ------------------------------------------------------------------
    # Aggregate reads
    # ------------------------------------------------------------------

    async def _rating_map(self, user_id: str) -> dict[int, Rating]:
        rows = await self._store.select(Table.RATINGS, {"user_id": user_id})
        return {int(r["movie_id"]): Rating.from_row(r) for r in rows}

    async def get_personal_list(self, user_id: str) -> list[PersonalListRow]:
        uid = _require_user(user_id)
        entries = [
            PersonalEntry.from_row(r)
            for r in await self._store.select(
                Table.PERSONAL_ENTRIES, {"user_id": uid, "kind": EntryKind.LIST.value}
            )
        ]
        watched_ids = {int(r["movie_id"]) for r in await self._store.select(Table.WATCHED_ENTRIES, {"user_id": uid})}
        ratings = await self._rating_map(uid)
        return [
            PersonalListRow(
                entry=e,
                watched=e.movie_id in watched_ids,
                rating=ratings[e.movie_id].rating if e.movie_id in ratings else None,
            )
            for e in _newest_first(entries, lambda e: e.added_at)
        ]

    async def get_personal_watchlist(self, user_id: str) -> list[PersonalEntry]:
        uid = _require_user(user_id)
        rows = await self._store.select(
            Table.PERSONAL_ENTRIES, {"user_id": uid, "kind": EntryKind.WATCHLIST.value}
        )
        return _newest_first((PersonalEntry.from_row(r) for r in rows), lambda e: e.added_at)

    async def _shared_rows(self, user_id: str) -> list[SharedWatchlistRow]:
        votes: dict[int, list[PersonalEntry]] = {}
        for r in await self._store.select(Table.PERSONAL_ENTRIES, {"kind": EntryKind.WATCHLIST.value}):
            e = PersonalEntry.from_row(r)
            votes.setdefault(e.movie_id, []).append(e)

        out: list[SharedWatchlistRow] = []
        for r in await self._store.select(Table.SHARED_ENTRIES):
            shared = SharedEntry.from_row(r)
            movie_votes = votes.get(shared.movie_id, [])
            values = [float(v.want_to_see_rating or 0.0) for v in movie_votes]
            mine = next((v.want_to_see_rating for v in movie_votes if v.user_id == user_id), None)
            out.append(
                SharedWatchlistRow(
                    entry=shared,
                    average_want_to_see_rating=(sum(values) / len(values)) if values else None,
                    vote_count=len(values),
                    user_want_to_see_rating=mine,
                )
            )
        return out

    async def get_shared_watchlist(self, user_id: str) -> list[SharedWatchlistRow]:
        uid = _require_user(user_id)
        return _newest_first(await self._shared_rows(uid), lambda row: row.entry.added_at)

    async def get_watched_movies(
        self, user_id: Optional[str] = None, *, limit: int = WATCHED_FEED_LIMIT
    ) -> list[WatchedRow]:
        """Newest-first watched feed; `user_id=None` is the whole group's feed."""
        match = {"user_id": user_id} if user_id else None
        entries = _newest_first(
            (WatchedEntry.from_row(r) for r in await self._store.select(Table.WATCHED_ENTRIES, match)),
            lambda e: e.watched_at,
        )[: max(0, int(limit))]

        rating_rows = await self._store.select(Table.RATINGS, match)
        ratings = {(str(r["user_id"]), int(r["movie_id"])): float(r["rating"]) for r in rating_rows}
        return [WatchedRow(entry=e, rating=ratings.get((e.user_id, e.movie_id))) for e in entries]

    async def get_ratings(self, user_id: str) -> list[Rating]:
        uid = _require_user(user_id)
        return list((await self._rating_map(uid)).values())

    async def get_rated_history(self, user_id: str) -> list[RatedMovie]:
        """Every movie the user watched, newest first, with their star rating if any."""
        uid = _require_user(user_id)
        ratings = await self._rating_map(uid)
        watched = await self._store.select(Table.WATCHED_ENTRIES, {"user_id": uid})
        history = [
            RatedMovie(
                movie=e.movie,
                rating=ratings[e.movie_id].rating if e.movie_id in ratings else None,
                watched_at=e.watched_at,
            )
            for e in (WatchedEntry.from_row(r) for r in watched)
        ]
        return _newest_first(history, lambda h: h.watched_at)

    async def get_schedule(self, user_id: str) -> list[ScheduleMonth]:
        """Scheduled shared movies grouped by calendar month, earliest first."""
        uid = _require_user(user_id)
        scheduled = sorted(
            (row for row in await self._shared_rows(uid) if row.entry.scheduled_for is not None),
            key=lambda row: row.entry.scheduled_for,
        )
        months: dict[date, list[SharedWatchlistRow]] = {}
        for row in scheduled:
            when = row.entry.scheduled_for
            months.setdefault(date(when.year, when.month, 1), []).append(row)
        return [ScheduleMonth(month=m, rows=tuple(rows)) for m, rows in months.items()]

    async def get_recent_activity(self, days: int = 7, *, limit: int = 20) -> list[Activity]:
        """Group activity feed (watched, rated, added to shared) from the last `days` days."""
        since = self._now() - timedelta(days=max(0, int(days)))
        snapshots: dict[int, MovieRef] = {}
        items: list[Activity] = []

        for r in await self._store.select(Table.WATCHED_ENTRIES):
            e = WatchedEntry.from_row(r)
            snapshots.setdefault(e.movie_id, e.movie)
            if e.watched_at and e.watched_at >= since:
                items.append(Activity(kind=ActivityKind.WATCHED, user_id=e.user_id, movie=e.movie, at=e.watched_at))

        for r in await self._store.select(Table.SHARED_ENTRIES):
            s = SharedEntry.from_row(r)
            snapshots.setdefault(s.movie_id, s.movie)
            if s.added_at and s.added_at >= since:
                items.append(Activity(kind=ActivityKind.SHARED, user_id=s.added_by, movie=s.movie, at=s.added_at))

        for r in await self._store.select(Table.RATINGS):
            rating = Rating.from_row(r)
            if rating.rated_at is None or rating.rated_at < since:
                continue
            movie = snapshots.get(rating.movie_id) or MovieRef(id=rating.movie_id, title=f"Movie {rating.movie_id}")
            items.append(
                Activity(
                    kind=ActivityKind.RATED,
                    user_id=rating.user_id,
                    movie=movie,
                    at=rating.rated_at,
                    rating=rating.rating,
                )
            )

        return _newest_first(items, lambda a: a.at)[: max(0, int(limit))]
