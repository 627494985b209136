import sys
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

from application.ports.watchlist_store_port import Table
from application.watchlist.invalidation import QueryKey
from application.watchlist.state_manager import WatchlistStateManager
from domain.watchlist.entries import ActivityKind, EntryKind
from domain.watchlist.errors import (
    DuplicateEntryError,
    InvalidDateError,
    MovieNotFoundError,
    NoUserSelectedError,
)
from domain.watchlist.movie import Genre, MovieDetails, MovieRef
from infrastructure.persistence.postgres.watchlist_store import InMemoryWatchlistStore


class _TickingClock:
    """Each call advances one minute so insertion order is visible in timestamps."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


class _DetailsCatalog:
    def __init__(self) -> None:
        self.calls: list[int] = []

    async def get_details(self, movie_id: int) -> MovieDetails:
        self.calls.append(movie_id)
        return MovieDetails(
            id=movie_id,
            title="Heat",
            genres=(Genre(80, "Crime"),),
            director="Michael Mann",
            cast=("Al Pacino", "Robert De Niro"),
            runtime=170,
        )


def _movie(movie_id: int, title: str = "") -> MovieRef:
    return MovieRef(id=movie_id, title=title or f"Movie {movie_id}")


class TestWatchlistStateManager(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.clock = _TickingClock(datetime(2025, 6, 15, 18, 0, tzinfo=timezone.utc))
        self.store = InMemoryWatchlistStore()
        self.manager = WatchlistStateManager(store=self.store, now=self.clock)

    async def test_watchlist_add_twice_is_duplicate(self) -> None:
        await self.manager.add_to_personal_watchlist("u1", _movie(123))
        with self.assertRaises(DuplicateEntryError):
            await self.manager.add_to_personal_watchlist("u1", _movie(123))

    async def test_list_and_watchlist_entries_coexist(self) -> None:
        listed = await self.manager.add_to_personal_list("u1", _movie(7))
        wanted = await self.manager.add_to_personal_watchlist("u1", _movie(7))

        self.assertIs(listed.kind, EntryKind.LIST)
        self.assertIsNone(listed.want_to_see_rating)
        self.assertIs(wanted.kind, EntryKind.WATCHLIST)
        self.assertEqual(wanted.want_to_see_rating, 5.0)

        with self.assertRaises(DuplicateEntryError):
            await self.manager.add_to_personal_list("u1", _movie(7))
        # Another user may list the same movie.
        await self.manager.add_to_personal_list("u2", _movie(7))

    async def test_shared_add_keeps_first_writer(self) -> None:
        await self.manager.add_to_shared("u1", _movie(9, "Alien"))
        with self.assertRaises(DuplicateEntryError):
            await self.manager.add_to_shared("u2", _movie(9, "Aliens"))

        rows = await self.manager.get_shared_watchlist("u2")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].entry.added_by, "u1")
        self.assertEqual(rows[0].entry.movie.title, "Alien")

    async def test_enrich_stores_catalog_snapshot(self) -> None:
        catalog = _DetailsCatalog()
        manager = WatchlistStateManager(store=self.store, metadata=catalog, now=self.clock)

        entry = await manager.add_to_personal_list("u1", _movie(949), enrich=True)

        self.assertEqual(catalog.calls, [949])
        self.assertEqual(entry.movie.director, "Michael Mann")
        self.assertEqual(entry.movie.cast, ("Al Pacino", "Robert De Niro"))
        self.assertNotIsInstance(entry.movie, MovieDetails)

    async def test_rate_movie_upserts_and_rounds(self) -> None:
        first = await self.manager.rate_movie("u1", 5, 3.7)
        self.assertEqual(first.rating, 3.7)

        second = await self.manager.rate_movie("u1", 5, 9)
        self.assertEqual(second.rating, 5.0)

        ratings = await self.manager.get_ratings("u1")
        self.assertEqual([(r.movie_id, r.rating) for r in ratings], [(5, 5.0)])

    async def test_rate_want_to_see_clamps(self) -> None:
        await self.manager.add_to_personal_watchlist("u1", _movie(3))

        entry = await self.manager.rate_want_to_see("u1", 3, 15)
        self.assertEqual(entry.want_to_see_rating, 10.0)
        entry = await self.manager.rate_want_to_see("u1", 3, -3)
        self.assertEqual(entry.want_to_see_rating, 1.0)

    async def test_rate_want_to_see_unknown_movie(self) -> None:
        with self.assertRaises(MovieNotFoundError):
            await self.manager.rate_want_to_see("u1", 999, 7)
        self.assertEqual(await self.manager.get_personal_watchlist("u1"), [])

    async def test_rate_want_to_see_copies_shared_snapshot(self) -> None:
        await self.manager.add_to_shared("u1", _movie(11, "Arrival"))

        entry = await self.manager.rate_want_to_see("u2", 11, 8)

        self.assertIs(entry.kind, EntryKind.WATCHLIST)
        self.assertEqual(entry.movie.title, "Arrival")
        self.assertEqual(entry.want_to_see_rating, 8.0)

    async def test_rate_want_to_see_copies_list_snapshot(self) -> None:
        await self.manager.add_to_personal_list("u1", _movie(12, "Dune"))

        entry = await self.manager.rate_want_to_see("u1", 12, 6)

        self.assertIs(entry.kind, EntryKind.WATCHLIST)
        self.assertEqual(entry.movie.title, "Dune")
        listed = await self.manager.get_personal_list("u1")
        self.assertEqual([r.entry.movie_id for r in listed], [12])

    async def test_toggle_watched_twice(self) -> None:
        self.assertTrue(await self.manager.toggle_watched("u1", _movie(4)))
        self.assertFalse(await self.manager.toggle_watched("u1", _movie(4)))
        self.assertEqual(await self.manager.get_watched_movies("u1"), [])

    async def test_unwatching_keeps_rating(self) -> None:
        await self.manager.toggle_watched("u1", _movie(4))
        await self.manager.rate_movie("u1", 4, 4)
        await self.manager.toggle_watched("u1", _movie(4))

        ratings = await self.manager.get_ratings("u1")
        self.assertEqual([r.rating for r in ratings], [4.0])

    async def test_remove_from_personal_cascades_but_keeps_vote(self) -> None:
        await self.manager.add_to_personal_list("u1", _movie(21))
        await self.manager.add_to_personal_watchlist("u1", _movie(21))
        await self.manager.toggle_watched("u1", _movie(21))
        await self.manager.rate_movie("u1", 21, 4.5)
        # Other users are untouched.
        await self.manager.toggle_watched("u2", _movie(21))

        removed = await self.manager.remove_from_personal("u1", 21)

        self.assertEqual(removed, {"personal_entry": 1, "rating": 1, "watched_entry": 1})
        self.assertEqual(await self.manager.get_personal_list("u1"), [])
        self.assertEqual(await self.manager.get_ratings("u1"), [])
        self.assertEqual(await self.manager.get_watched_movies("u1"), [])
        self.assertEqual(len(await self.manager.get_personal_watchlist("u1")), 1)
        self.assertEqual(len(await self.manager.get_watched_movies("u2")), 1)

    async def test_remove_from_shared_drops_every_vote(self) -> None:
        await self.manager.add_to_shared("u1", _movie(31))
        await self.manager.rate_want_to_see("u1", 31, 9)
        await self.manager.rate_want_to_see("u2", 31, 3)
        await self.manager.add_to_personal_list("u2", _movie(31))
        await self.manager.add_to_personal_watchlist("u2", _movie(32))

        removed = await self.manager.remove_from_shared("u2", 31)

        self.assertEqual(removed, {"shared_entry": 1, "watchlist_entries": 2})
        self.assertEqual(await self.manager.get_shared_watchlist("u1"), [])
        self.assertEqual(await self.manager.get_personal_watchlist("u1"), [])
        self.assertEqual([e.movie_id for e in await self.manager.get_personal_watchlist("u2")], [32])
        self.assertEqual(len(await self.manager.get_personal_list("u2")), 1)

    async def test_remove_from_personal_watchlist(self) -> None:
        await self.manager.add_to_personal_watchlist("u1", _movie(41))
        self.assertTrue(await self.manager.remove_from_personal_watchlist("u1", 41))
        self.assertFalse(await self.manager.remove_from_personal_watchlist("u1", 41))

    async def test_blank_user_is_rejected(self) -> None:
        with self.assertRaises(NoUserSelectedError):
            await self.manager.add_to_personal_list("", _movie(1))
        with self.assertRaises(NoUserSelectedError):
            await self.manager.rate_movie("   ", 1, 3)
        with self.assertRaises(NoUserSelectedError):
            await self.manager.get_personal_list(None)  # type: ignore[arg-type]
        self.assertEqual(await self.store.select(Table.PERSONAL_ENTRIES), [])
        self.assertEqual(await self.store.select(Table.RATINGS), [])

    async def test_invalidation_events(self) -> None:
        events = []
        unsubscribe = self.manager.subscribe(events.append)

        await self.manager.add_to_personal_list("u1", _movie(1))
        await self.manager.rate_movie("u1", 1, 4)

        self.assertEqual([e.operation for e in events], ["add_to_personal_list", "rate_movie"])
        self.assertEqual(events[0].keys, frozenset({QueryKey.PERSONAL_LIST}))
        self.assertIn(QueryKey.RATINGS, events[1].keys)
        self.assertEqual(events[1].user_id, "u1")

        unsubscribe()
        await self.manager.toggle_watched("u1", _movie(1))
        self.assertEqual(len(events), 2)

    async def test_failing_callback_does_not_break_mutation(self) -> None:
        seen = []

        def _boom(_event) -> None:
            raise RuntimeError("listener down")

        self.manager.subscribe(_boom)
        self.manager.subscribe(seen.append)

        with self.assertLogs("application.watchlist.state_manager", level="WARNING"):
            entry = await self.manager.add_to_shared("u1", _movie(5))

        self.assertEqual(entry.movie_id, 5)
        self.assertEqual(len(seen), 1)

    async def test_no_event_when_nothing_changed(self) -> None:
        events = []
        self.manager.subscribe(events.append)

        self.assertIsNone(await self.manager.schedule_movie("u1", 77, "2025-12-25"))
        self.assertFalse(await self.manager.remove_from_personal_watchlist("u1", 77))
        await self.manager.add_to_shared("u1", _movie(5))
        with self.assertRaises(DuplicateEntryError):
            await self.manager.add_to_shared("u2", _movie(5))

        self.assertEqual([e.operation for e in events], ["add_to_shared"])

    async def test_shared_watchlist_aggregates_votes(self) -> None:
        await self.manager.add_to_shared("u1", _movie(50))
        await self.manager.add_to_shared("u1", _movie(51))
        await self.manager.rate_want_to_see("u1", 50, 8)
        await self.manager.rate_want_to_see("u2", 50, 5)

        rows = {r.entry.movie_id: r for r in await self.manager.get_shared_watchlist("u2")}

        self.assertEqual(rows[50].vote_count, 2)
        self.assertAlmostEqual(rows[50].average_want_to_see_rating, 6.5)
        self.assertEqual(rows[50].user_want_to_see_rating, 5.0)
        self.assertEqual(rows[51].vote_count, 0)
        self.assertIsNone(rows[51].average_want_to_see_rating)
        self.assertIsNone(rows[51].user_want_to_see_rating)

    async def test_personal_list_joins_watched_and_rating(self) -> None:
        await self.manager.add_to_personal_list("u1", _movie(60))
        await self.manager.add_to_personal_list("u1", _movie(61))
        await self.manager.toggle_watched("u1", _movie(61))
        await self.manager.rate_movie("u1", 61, 4.2)

        rows = await self.manager.get_personal_list("u1")

        self.assertEqual([r.entry.movie_id for r in rows], [61, 60])
        self.assertEqual((rows[0].watched, rows[0].rating), (True, 4.2))
        self.assertEqual((rows[1].watched, rows[1].rating), (False, None))

    async def test_watched_feed_is_newest_first_with_ratings(self) -> None:
        await self.manager.toggle_watched("u1", _movie(70))
        await self.manager.toggle_watched("u2", _movie(70))
        await self.manager.toggle_watched("u1", _movie(71))
        await self.manager.rate_movie("u2", 70, 2)

        feed = await self.manager.get_watched_movies()
        self.assertEqual([(r.entry.user_id, r.entry.movie_id) for r in feed], [("u1", 71), ("u2", 70), ("u1", 70)])
        self.assertEqual([r.rating for r in feed], [None, 2.0, None])

        limited = await self.manager.get_watched_movies(limit=1)
        self.assertEqual([r.entry.movie_id for r in limited], [71])

    async def test_schedule_sets_and_clears(self) -> None:
        await self.manager.add_to_shared("u1", _movie(42))

        entry = await self.manager.schedule_movie("u2", 42, "2025-12-25")
        self.assertEqual(entry.scheduled_for, datetime(2025, 12, 25, 12, tzinfo=timezone.utc))

        with self.assertRaises(InvalidDateError):
            await self.manager.schedule_movie("u2", 42, "not-a-date")

        cleared = await self.manager.schedule_movie("u2", 42, None)
        self.assertIsNone(cleared.scheduled_for)

    async def test_schedule_groups_by_month(self) -> None:
        for movie_id in (1, 2, 3, 4):
            await self.manager.add_to_shared("u1", _movie(movie_id))
        await self.manager.schedule_movie("u1", 1, "2026-01-10")
        await self.manager.schedule_movie("u1", 2, "2025-12-31")
        await self.manager.schedule_movie("u1", 3, "2025-12-02")

        months = await self.manager.get_schedule("u1")

        self.assertEqual([m.month for m in months], [date(2025, 12, 1), date(2026, 1, 1)])
        self.assertEqual([r.entry.movie_id for r in months[0].rows], [3, 2])
        self.assertEqual([r.entry.movie_id for r in months[1].rows], [1])

    async def test_rated_history_only_covers_watched(self) -> None:
        await self.manager.toggle_watched("u1", _movie(80, "Memento"))
        await self.manager.toggle_watched("u1", _movie(81, "Tenet"))
        await self.manager.rate_movie("u1", 80, 5)
        await self.manager.rate_movie("u1", 99, 3)

        history = await self.manager.get_rated_history("u1")

        self.assertEqual([(h.movie.title, h.rating) for h in history], [("Tenet", None), ("Memento", 5.0)])

    async def test_recent_activity(self) -> None:
        old = WatchlistStateManager(
            store=self.store,
            now=_TickingClock(datetime(2025, 5, 1, tzinfo=timezone.utc)),
        )
        await old.toggle_watched("u3", _movie(90))

        await self.manager.add_to_shared("u1", _movie(91, "Parasite"))
        await self.manager.toggle_watched("u2", _movie(92, "Oldboy"))
        await self.manager.rate_movie("u2", 92, 4)
        await self.manager.rate_movie("u2", 93, 3)

        activity = await self.manager.get_recent_activity(days=7)

        self.assertEqual(
            [(a.kind, a.user_id, a.movie.id) for a in activity],
            [
                (ActivityKind.RATED, "u2", 93),
                (ActivityKind.RATED, "u2", 92),
                (ActivityKind.WATCHED, "u2", 92),
                (ActivityKind.SHARED, "u1", 91),
            ],
        )
        self.assertEqual(activity[1].movie.title, "Oldboy")
        self.assertEqual(activity[0].movie.title, "Movie 93")
        self.assertEqual(activity[1].rating, 4.0)

        self.assertEqual(len(await self.manager.get_recent_activity(days=7, limit=2)), 2)


if __name__ == "__main__":
    unittest.main()
