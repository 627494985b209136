from __future__ import annotations

from typing import List, Protocol

from domain.watchlist.movie import MovieDetails, MovieRef


class MetadataClientPort(Protocol):
    """Read-only movie catalog. Every call may raise CatalogUnavailableError."""

    async def search_by_title(self, query: str) -> List[MovieRef]:
        ...

    async def get_details(self, movie_id: int) -> MovieDetails:
        ...

    async def get_similar(self, movie_id: int) -> List[MovieRef]:
        ...

    async def close(self) -> None:
        ...
