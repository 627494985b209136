import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class TestCatalogCache(unittest.TestCase):
    def test_ttl_per_kind(self):
        from infrastructure.cache.catalog_cache import DETAILS, GENRES, SEARCH, CatalogCache

        clock = _Clock()
        cache = CatalogCache(clock=clock)
        cache.set(SEARCH, "en-US:alien", ["a"])
        cache.set(DETAILS, "en-US:348", {"id": 348})
        cache.set(GENRES, "en-US", {28: "Action"})

        clock.advance(minutes=20)
        self.assertIsNone(cache.get(SEARCH, "en-US:alien"))
        self.assertEqual(cache.get(DETAILS, "en-US:348"), {"id": 348})

        clock.advance(hours=1)
        self.assertIsNone(cache.get(DETAILS, "en-US:348"))
        self.assertEqual(cache.get(GENRES, "en-US"), {28: "Action"})

    def test_custom_and_default_ttl(self):
        from infrastructure.cache.catalog_cache import SEARCH, CatalogCache

        clock = _Clock()
        cache = CatalogCache(ttls={SEARCH: timedelta(seconds=5)}, default_ttl=timedelta(minutes=2), clock=clock)
        self.assertEqual(cache.ttl_for(SEARCH), timedelta(seconds=5))
        self.assertEqual(cache.ttl_for("other"), timedelta(minutes=2))

        cache.set("other", "k", 1)
        clock.advance(minutes=2)
        self.assertIsNone(cache.get("other", "k"))

    def test_lru_eviction(self):
        from infrastructure.cache.catalog_cache import DETAILS, CatalogCache

        cache = CatalogCache(max_size=2, clock=_Clock())
        cache.set(DETAILS, "1", "one")
        cache.set(DETAILS, "2", "two")
        # Touch 1 so 2 becomes least recently used.
        self.assertEqual(cache.get(DETAILS, "1"), "one")
        cache.set(DETAILS, "3", "three")

        self.assertEqual(len(cache), 2)
        self.assertIsNone(cache.get(DETAILS, "2"))
        self.assertEqual(cache.get(DETAILS, "1"), "one")

        # Overwriting an existing key never evicts.
        cache.set(DETAILS, "1", "uno")
        self.assertEqual(cache.get(DETAILS, "3"), "three")
        self.assertEqual(cache.get(DETAILS, "1"), "uno")

    def test_cleanup_and_delete(self):
        from infrastructure.cache.catalog_cache import GENRES, SEARCH, CatalogCache

        clock = _Clock()
        cache = CatalogCache(clock=clock)
        cache.set(SEARCH, "a", 1)
        cache.set(SEARCH, "b", 2)
        cache.set(GENRES, "en-US", {})

        clock.advance(minutes=16)
        self.assertEqual(cache.cleanup_expired(), 2)
        self.assertEqual(len(cache), 1)
        self.assertTrue(cache.delete(GENRES, "en-US"))
        self.assertFalse(cache.delete(GENRES, "en-US"))


if __name__ == "__main__":
    unittest.main()
