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
    CatalogUnavailableError,
    DuplicateEntryError,
    InvalidDateError,
    MovieNotFoundError,
    NoUserSelectedError,
    PartialRemovalFailureError,
    StoreUnavailableError,
    WatchlistError,
)
from domain.watchlist.movie import Genre, MovieDetails, MovieRef

__all__ = [
    "Activity",
    "ActivityKind",
    "CatalogUnavailableError",
    "DuplicateEntryError",
    "EntryKind",
    "Genre",
    "InvalidDateError",
    "MovieDetails",
    "MovieNotFoundError",
    "MovieRef",
    "NoUserSelectedError",
    "PartialRemovalFailureError",
    "PersonalEntry",
    "PersonalListRow",
    "RatedMovie",
    "Rating",
    "ScheduleMonth",
    "SharedEntry",
    "SharedWatchlistRow",
    "StoreUnavailableError",
    "WatchedEntry",
    "WatchedRow",
    "WatchlistError",
]
