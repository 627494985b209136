from __future__ import annotations

import enum
from typing import Any, AsyncContextManager, Dict, List, Mapping, Optional, Protocol

Row = Dict[str, Any]


class Table(str, enum.Enum):
    PERSONAL_ENTRIES = "personal_entries"
    SHARED_ENTRIES = "shared_entries"
    WATCHED_ENTRIES = "watched_entries"
    RATINGS = "ratings"


TABLE_COLUMNS: dict[Table, tuple[str, ...]] = {
    Table.PERSONAL_ENTRIES: ("user_id", "movie_id", "kind", "want_to_see_rating", "movie_data", "added_at"),
    Table.SHARED_ENTRIES: ("movie_id", "movie_data", "added_by", "scheduled_for", "added_at"),
    Table.WATCHED_ENTRIES: ("user_id", "movie_id", "movie_data", "watched_at"),
    Table.RATINGS: ("user_id", "movie_id", "rating", "rated_at"),
}

# Uniqueness every adapter must enforce; the state manager's pre-checks are
# not enough under concurrent writers.
UNIQUE_KEYS: dict[Table, tuple[str, ...]] = {
    Table.PERSONAL_ENTRIES: ("user_id", "movie_id", "kind"),
    Table.SHARED_ENTRIES: ("movie_id",),
    Table.WATCHED_ENTRIES: ("user_id", "movie_id"),
    Table.RATINGS: ("user_id", "movie_id"),
}


class WatchlistStorePort(Protocol):
    """Generic four-table store.

    `match` is a column -> value equality filter (all must hold). Unique-key
    violations raise DuplicateEntryError; infrastructure failures raise
    StoreUnavailableError.
    """

    @property
    def supports_transactions(self) -> bool:
        ...

    async def insert(self, table: Table, row: Mapping[str, Any]) -> Row:
        ...

    async def update(self, table: Table, match: Mapping[str, Any], patch: Mapping[str, Any]) -> List[Row]:
        ...

    async def delete(self, table: Table, match: Mapping[str, Any]) -> int:
        ...

    async def select(self, table: Table, match: Optional[Mapping[str, Any]] = None) -> List[Row]:
        ...

    def transaction(self) -> AsyncContextManager[None]:
        """All store calls made inside the block commit or roll back together."""
        ...

    async def close(self) -> None:
        ...
