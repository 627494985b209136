"""
TMDB API HTTP client for fetching movie data.

Implements MetadataClientPort: title search, full details (with credits) and the
"recommendations" endpoint used as the similar-movies pool. Details are
completed with OMDb ratings when an OMDb key is configured. Responses are mapped
into MovieRef/MovieDetails snapshots and cached through an injected CachePort.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from typing import Any, Optional

import aiohttp

from application.ports.cache_port import CachePort
from application.ports.metadata_client_port import MetadataClientPort
from domain.watchlist.errors import CatalogUnavailableError, MovieNotFoundError
from domain.watchlist.movie import Genre, MovieDetails, MovieRef
from infrastructure.cache.catalog_cache import DETAILS, EXTERNAL_RATINGS, GENRES, SEARCH, SIMILAR
from infrastructure.config.settings import (
    OMDB_API_KEY,
    OMDB_BASE_URL,
    TMDB_API_KEY,
    TMDB_API_TOKEN,
    TMDB_BASE_URL,
    TMDB_CAST_LIMIT,
    TMDB_LANGUAGE,
    TMDB_TIMEOUT_S,
)

logger = logging.getLogger(__name__)

_IMDB_ID = re.compile(r"^tt\d+$")


def _director(credits: dict[str, Any]) -> Optional[str]:
    for member in credits.get("crew") or []:
        if isinstance(member, dict) and member.get("job") == "Director":
            name = str(member.get("name") or "").strip()
            if name:
                return name
    return None


def _cast(credits: dict[str, Any], limit: int) -> list[str]:
    names: list[str] = []
    for member in credits.get("cast") or []:
        if not isinstance(member, dict):
            continue
        name = str(member.get("name") or "").strip()
        if name:
            names.append(name)
        if len(names) >= limit:
            break
    return names


def parse_movie_details(payload: dict[str, Any], *, cast_limit: int = 5) -> MovieDetails:
    """Map a `movie/{id}?append_to_response=credits` payload to MovieDetails."""
    credits = payload.get("credits") if isinstance(payload.get("credits"), dict) else {}
    data = dict(payload)
    data["director"] = _director(credits)
    data["cast"] = _cast(credits, cast_limit)
    return MovieDetails.from_dict(data)


def parse_movie_result(payload: dict[str, Any], genre_names: dict[int, str]) -> MovieRef:
    """Map a search/recommendations list item; genre names come from `genre/movie/list`."""
    ref = MovieRef.from_dict(payload)
    if not ref.genres:
        return ref
    genres = tuple(Genre(id=g.id, name=g.name or genre_names.get(g.id, "")) for g in ref.genres)
    return replace(ref, genres=genres)


def parse_external_ratings(payload: dict[str, Any]) -> dict[str, str]:
    """OMDb `Ratings` list -> {"Internet Movie Database": "8.8/10", ...}."""
    if str(payload.get("Response") or "").lower() == "false":
        return {}
    ratings: dict[str, str] = {}
    for item in payload.get("Ratings") or []:
        if not isinstance(item, dict):
            continue
        source = str(item.get("Source") or "").strip()
        value = str(item.get("Value") or "").strip()
        if source and value:
            ratings[source] = value
    return ratings


class TMDBClient(MetadataClientPort):
    """Async HTTP client for TMDB API.

    Attributes:
        _base_url: TMDB API base URL
        _api_token: TMDB API bearer token (v4)
        _api_key: TMDB API key (v3, used when no bearer token is set)
        _timeout_s: Request timeout in seconds
        _omdb_base_url: OMDb API base URL (external ratings)
        _omdb_api_key: OMDb API key; external ratings are skipped without it
        _cache: optional CachePort shared across requests
        _session: aiohttp ClientSession (lazily initialized)
        _lock: Async lock for session creation
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_token: str | None = None,
        api_key: str | None = None,
        timeout_s: float | None = None,
        language: str | None = None,
        cast_limit: int | None = None,
        omdb_base_url: str | None = None,
        omdb_api_key: str | None = None,
        cache: CachePort | None = None,
    ) -> None:
        self._base_url = (base_url or TMDB_BASE_URL or "").rstrip("/")
        self._api_token = (api_token or TMDB_API_TOKEN or "").strip()
        self._api_key = (api_key or TMDB_API_KEY or "").strip()
        self._timeout_s = float(timeout_s or TMDB_TIMEOUT_S or 10.0)
        self._language = language or TMDB_LANGUAGE
        self._cast_limit = int(cast_limit or TMDB_CAST_LIMIT)
        self._omdb_base_url = (omdb_base_url or OMDB_BASE_URL or "").rstrip("/")
        self._omdb_api_key = (omdb_api_key if omdb_api_key is not None else OMDB_API_KEY or "").strip()
        self._cache = cache
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self._base_url and (self._api_token or self._api_key))

    @property
    def omdb_configured(self) -> bool:
        return bool(self._omdb_base_url and self._omdb_api_key)

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        # Prefer v4 bearer token auth when available.
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    def _auth_params(self) -> dict[str, str]:
        """v3 auth via api_key query param (used when bearer token is absent)."""
        if self._api_token:
            return {}
        if self._api_key:
            return {"api_key": self._api_key}
        return {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session (double-checked under the lock)."""
        if self._session is not None and not self._session.closed:
            return self._session

        async with self._lock:
            if self._session is not None and not self._session.closed:
                return self._session

            timeout = aiohttp.ClientTimeout(total=self._timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            return self._session

    async def _request_json(
        self, service: str, url: str, path: str, query: dict[str, Any], headers: dict[str, str]
    ) -> dict[str, Any]:
        try:
            session = await self._get_session()
            async with session.get(url, params=query, headers=headers) as resp:
                if resp.status == 404:
                    raise MovieNotFoundError(f"{service} resource not found: {path}")
                if resp.status >= 400:
                    error_text = await resp.text()
                    logger.error(
                        "%s request failed path=%s status=%s body=%s", service, path, resp.status, error_text[:200]
                    )
                    raise CatalogUnavailableError(f"{service} request failed ({resp.status}): {path}")
                data = await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            logger.error("%s request timeout after %ss path=%s", service, self._timeout_s, path)
            raise CatalogUnavailableError(f"{service} request timed out: {path}") from exc
        except aiohttp.ClientError as exc:
            logger.error("%s request error path=%s: %s", service, path, exc)
            raise CatalogUnavailableError(f"{service} request error: {path}") from exc

        if not isinstance(data, dict):
            raise CatalogUnavailableError(f"{service} returned an unexpected payload for {path}")
        return data

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.configured:
            raise CatalogUnavailableError("TMDB client not configured (missing base_url or auth)")

        # Use direct concatenation to avoid urljoin eating the /3 path
        url = f"{self._base_url}/{path.lstrip('/')}"
        query = {"language": self._language, **(params or {}), **self._auth_params()}
        return await self._request_json("TMDB", url, path, query, self._headers())

    async def _get_omdb_json(self, imdb_id: str) -> dict[str, Any]:
        query = {"apikey": self._omdb_api_key, "i": imdb_id}
        return await self._request_json(
            "OMDb", f"{self._omdb_base_url}/", imdb_id, query, {"accept": "application/json"}
        )

    def _cached(self, kind: str, key: str) -> Any:
        if self._cache is None:
            return None
        return self._cache.get(kind, key)

    def _remember(self, kind: str, key: str, value: Any) -> None:
        if self._cache is not None:
            self._cache.set(kind, key, value)

    async def get_genres(self) -> dict[int, str]:
        """Genre id -> name, from `genre/movie/list`."""
        key = self._language
        hit = self._cached(GENRES, key)
        if hit is not None:
            return dict(hit)

        data = await self._get_json("genre/movie/list")
        genres: dict[int, str] = {}
        for g in data.get("genres") or []:
            if isinstance(g, dict) and g.get("id") is not None:
                genres[int(g["id"])] = str(g.get("name") or "")
        self._remember(GENRES, key, dict(genres))
        return genres

    async def _movie_list(self, path: str, params: dict[str, Any] | None = None) -> list[MovieRef]:
        data = await self._get_json(path, params)
        results = [r for r in (data.get("results") or []) if isinstance(r, dict) and r.get("id") is not None]
        genre_names = await self.get_genres() if results else {}
        return [parse_movie_result(r, genre_names) for r in results]

    async def search_by_title(self, query: str) -> list[MovieRef]:
        q = (query or "").strip()
        if not q:
            return []
        key = f"{self._language}:{q.lower()}"
        hit = self._cached(SEARCH, key)
        if hit is not None:
            return list(hit)

        logger.debug("TMDB search query=%s", q)
        movies = await self._movie_list("search/movie", {"query": q, "page": 1, "include_adult": "false"})
        self._remember(SEARCH, key, tuple(movies))
        return movies

    async def get_external_ratings(self, imdb_id: str | None) -> dict[str, str]:
        """Ratings from other sources via OMDb, keyed by source name.

        Optional: returns {} when OMDb is not configured, the id is not an
        IMDb id, or the lookup fails. Results (empty ones too) are cached by
        imdb_id under EXTERNAL_RATINGS.
        """
        imdb = (imdb_id or "").strip()
        if not self.omdb_configured or not _IMDB_ID.match(imdb):
            return {}
        hit = self._cached(EXTERNAL_RATINGS, imdb)
        if hit is not None:
            return dict(hit)

        try:
            data = await self._get_omdb_json(imdb)
        except (CatalogUnavailableError, MovieNotFoundError) as exc:
            logger.warning("OMDb ratings unavailable imdb_id=%s: %s", imdb, exc)
            return {}
        ratings = parse_external_ratings(data)
        self._remember(EXTERNAL_RATINGS, imdb, dict(ratings))
        return ratings

    async def get_details(self, movie_id: int) -> MovieDetails:
        key = f"{self._language}:{int(movie_id)}"
        hit = self._cached(DETAILS, key)
        if hit is not None:
            return hit

        data = await self._get_json(f"movie/{int(movie_id)}", {"append_to_response": "credits"})
        details = parse_movie_details(data, cast_limit=self._cast_limit)
        ratings = await self.get_external_ratings(details.imdb_id)
        if ratings:
            details = replace(details, external_ratings=ratings)
        self._remember(DETAILS, key, details)
        return details

    async def get_similar(self, movie_id: int) -> list[MovieRef]:
        key = f"{self._language}:{int(movie_id)}"
        hit = self._cached(SIMILAR, key)
        if hit is not None:
            return list(hit)

        movies = await self._movie_list(f"movie/{int(movie_id)}/recommendations", {"page": 1})
        self._remember(SIMILAR, key, tuple(movies))
        return movies

    async def close(self) -> None:
        """Close the HTTP session and release resources."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
