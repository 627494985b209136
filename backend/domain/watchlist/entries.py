from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from domain.watchlist.movie import MovieRef


class EntryKind(str, enum.Enum):
    """Which personal collection a PersonalEntry belongs to.

    LIST entries never carry a want-to-see rating; WATCHLIST entries always do.
    """

    LIST = "list"
    WATCHLIST = "watchlist"


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _movie_from_row(value: Any) -> MovieRef:
    # asyncpg returns jsonb as str unless a codec is registered.
    if isinstance(value, str):
        value = json.loads(value)
    if isinstance(value, MovieRef):
        return value
    return MovieRef.from_dict(dict(value or {}))


@dataclass(frozen=True)
class PersonalEntry:
    user_id: str
    movie_id: int
    movie: MovieRef
    kind: EntryKind = EntryKind.LIST
    want_to_see_rating: Optional[float] = None
    added_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if (self.kind is EntryKind.LIST) != (self.want_to_see_rating is None):
            raise ValueError("LIST entries carry no want-to-see rating; WATCHLIST entries require one")

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "movie_id": self.movie_id,
            "kind": self.kind.value,
            "want_to_see_rating": self.want_to_see_rating,
            "movie_data": self.movie.to_dict(),
            "added_at": self.added_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PersonalEntry":
        rating = row.get("want_to_see_rating")
        return cls(
            user_id=str(row["user_id"]),
            movie_id=int(row["movie_id"]),
            movie=_movie_from_row(row.get("movie_data")),
            kind=EntryKind(row.get("kind") or EntryKind.LIST.value),
            want_to_see_rating=float(rating) if rating is not None else None,
            added_at=_as_datetime(row.get("added_at")),
        )


@dataclass(frozen=True)
class SharedEntry:
    movie_id: int
    movie: MovieRef
    added_by: str
    scheduled_for: Optional[datetime] = None
    added_at: Optional[datetime] = None

    def to_row(self) -> dict[str, Any]:
        return {
            "movie_id": self.movie_id,
            "movie_data": self.movie.to_dict(),
            "added_by": self.added_by,
            "scheduled_for": self.scheduled_for,
            "added_at": self.added_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SharedEntry":
        return cls(
            movie_id=int(row["movie_id"]),
            movie=_movie_from_row(row.get("movie_data")),
            added_by=str(row.get("added_by") or ""),
            scheduled_for=_as_datetime(row.get("scheduled_for")),
            added_at=_as_datetime(row.get("added_at")),
        )


@dataclass(frozen=True)
class WatchedEntry:
    user_id: str
    movie_id: int
    movie: MovieRef
    watched_at: Optional[datetime] = None

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "movie_id": self.movie_id,
            "movie_data": self.movie.to_dict(),
            "watched_at": self.watched_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "WatchedEntry":
        return cls(
            user_id=str(row["user_id"]),
            movie_id=int(row["movie_id"]),
            movie=_movie_from_row(row.get("movie_data")),
            watched_at=_as_datetime(row.get("watched_at")),
        )


@dataclass(frozen=True)
class Rating:
    """A 1-5 star rating of a watched movie."""

    user_id: str
    movie_id: int
    rating: float
    rated_at: Optional[datetime] = None

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "movie_id": self.movie_id,
            "rating": self.rating,
            "rated_at": self.rated_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Rating":
        return cls(
            user_id=str(row["user_id"]),
            movie_id=int(row["movie_id"]),
            rating=float(row["rating"]),
            rated_at=_as_datetime(row.get("rated_at")),
        )


# ---------------------------------------------------------------------------
# Read-side view rows (denormalised, ready for display)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PersonalListRow:
    entry: PersonalEntry
    watched: bool = False
    rating: Optional[float] = None


@dataclass(frozen=True)
class SharedWatchlistRow:
    entry: SharedEntry
    average_want_to_see_rating: Optional[float] = None
    vote_count: int = 0
    user_want_to_see_rating: Optional[float] = None


@dataclass(frozen=True)
class WatchedRow:
    entry: WatchedEntry
    rating: Optional[float] = None


@dataclass(frozen=True)
class RatedMovie:
    """A watched movie joined with the user's star rating (if any)."""

    movie: MovieRef
    rating: Optional[float] = None
    watched_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScheduleMonth:
    # First day of the month.
    month: date
    rows: tuple[SharedWatchlistRow, ...] = ()


class ActivityKind(str, enum.Enum):
    WATCHED = "watched"
    RATED = "rated"
    SHARED = "shared"


@dataclass(frozen=True)
class Activity:
    kind: ActivityKind
    user_id: str
    movie: MovieRef
    at: datetime
    rating: Optional[float] = None
