from __future__ import annotations

from typing import Sequence


class WatchlistError(Exception):
    """Base class for errors surfaced by the watchlist core."""


class DuplicateEntryError(WatchlistError):
    """An insert would violate a uniqueness invariant (user-facing, never retried).

    Raised by the state manager's pre-check and by stores on unique-key
    violations, since concurrent adds can both pass the pre-check.
    """


class MovieNotFoundError(WatchlistError):
    pass


class InvalidDateError(WatchlistError):
    pass


class NoUserSelectedError(WatchlistError):
    def __init__(self, message: str = "No user selected") -> None:
        super().__init__(message)


class StoreUnavailableError(WatchlistError):
    """Transient storage failure; callers decide whether to retry."""


class CatalogUnavailableError(WatchlistError):
    """Transient metadata catalog failure (HTTP error, timeout, misconfiguration)."""


class PartialRemovalFailureError(WatchlistError):
    """A cascade delete did not fully succeed.

    `failures` holds one (step, error) pair per failed delete so the caller can
    retry the remaining steps.
    """

    def __init__(self, movie_id: int, failures: Sequence[tuple[str, BaseException]]) -> None:
        self.movie_id = movie_id
        self.failures = list(failures)
        detail = ", ".join(f"{step}: {err}" for step, err in self.failures)
        super().__init__(f"Failed to remove movie {movie_id}: {detail}")

    @property
    def failed_steps(self) -> list[str]:
        return [step for step, _ in self.failures]
