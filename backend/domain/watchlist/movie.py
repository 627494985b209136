from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Optional


def _parse_release_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    raw = str(value or "").strip()
    if len(raw) < 10:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Genre:
    id: int
    name: str = ""


@dataclass(frozen=True)
class MovieRef:
    """Immutable catalog snapshot embedded (by value) into every entry.

    Entries keep the snapshot taken at insert time, so historical rows stay
    stable when catalog data later changes.
    """

    id: int
    title: str
    release_date: Optional[date] = None
    poster_path: Optional[str] = None
    genres: tuple[Genre, ...] = ()
    director: Optional[str] = None
    # Top-billed actors, in billing order.
    cast: tuple[str, ...] = ()
    # Catalog average on a 0-10 scale.
    community_rating: Optional[float] = None
    popularity: Optional[float] = None
    overview: Optional[str] = None

    @property
    def genre_ids(self) -> frozenset[int]:
        return frozenset(g.id for g in self.genres)

    @property
    def actors(self) -> str:
        """Cast as the comma-joined string shown in the UI."""
        return ", ".join(self.cast)

    @property
    def has_credits(self) -> bool:
        return bool(self.director) or bool(self.cast)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "release_date": self.release_date.isoformat() if self.release_date else None,
            "poster_path": self.poster_path,
            "genres": [{"id": g.id, "name": g.name} for g in self.genres],
            "director": self.director,
            "cast": list(self.cast),
            "vote_average": self.community_rating,
            "popularity": self.popularity,
            "overview": self.overview,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MovieRef":
        """Build a snapshot from a stored row or a raw catalog payload."""
        return cls(**_common_kwargs(data))


@dataclass(frozen=True)
class MovieDetails(MovieRef):
    """Full catalog record: a superset of MovieRef."""

    runtime: Optional[int] = None
    tagline: Optional[str] = None
    imdb_id: Optional[str] = None
    external_ratings: dict[str, str] = field(default_factory=dict)

    def to_ref(self) -> MovieRef:
        names = {f.name for f in fields(MovieRef)}
        return MovieRef(**{k: getattr(self, k) for k in names})

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out.update(
            {
                "runtime": self.runtime,
                "tagline": self.tagline,
                "imdb_id": self.imdb_id,
                "external_ratings": dict(self.external_ratings),
            }
        )
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MovieDetails":
        runtime = data.get("runtime")
        ext = data.get("external_ratings")
        return cls(
            **_common_kwargs(data),
            runtime=int(runtime) if isinstance(runtime, (int, float)) else None,
            tagline=(str(data.get("tagline") or "").strip() or None),
            imdb_id=(str(data.get("imdb_id") or "").strip() or None),
            external_ratings=dict(ext) if isinstance(ext, dict) else {},
        )


def _common_kwargs(data: dict[str, Any]) -> dict[str, Any]:
    genres: list[Genre] = []
    for g in data.get("genres") or []:
        if isinstance(g, dict) and g.get("id") is not None:
            genres.append(Genre(id=int(g["id"]), name=str(g.get("name") or "")))
    # Search/recommendation payloads only carry ids.
    if not genres:
        for gid in data.get("genre_ids") or []:
            try:
                genres.append(Genre(id=int(gid)))
            except (TypeError, ValueError):
                continue

    cast = data.get("cast")
    if isinstance(cast, str):
        cast_names = [c.strip() for c in cast.split(",")]
    elif isinstance(cast, (list, tuple)):
        cast_names = [str(c).strip() for c in cast]
    else:
        cast_names = [c.strip() for c in str(data.get("actors") or "").split(",")]

    rating = data.get("vote_average", data.get("community_rating"))
    return {
        "id": int(data["id"]),
        "title": str(data.get("title") or data.get("original_title") or ""),
        "release_date": _parse_release_date(data.get("release_date")),
        "poster_path": data.get("poster_path") or None,
        "genres": tuple(genres),
        "director": (str(data.get("director") or "").strip() or None),
        "cast": tuple(c for c in cast_names if c),
        "community_rating": _as_float(rating),
        "popularity": _as_float(data.get("popularity")),
        "overview": (str(data.get("overview") or "").strip() or None),
    }
