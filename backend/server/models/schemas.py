from __future__ import annotations

import dataclasses
from typing import Any, List, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from domain.watchlist.movie import MovieRef


class GenreIn(BaseModel):
    id: int
    name: str = ""


class MovieIn(BaseModel):
    """电影快照（来自搜索结果或详情）"""

    id: int
    title: str
    release_date: Optional[str] = None
    poster_path: Optional[str] = None
    genres: List[GenreIn] = Field(default_factory=list)
    genre_ids: List[int] = Field(default_factory=list)
    director: Optional[str] = None
    cast: List[str] = Field(default_factory=list)
    vote_average: Optional[float] = None
    popularity: Optional[float] = None
    overview: Optional[str] = None

    def to_domain(self) -> MovieRef:
        return MovieRef.from_dict(self.model_dump())


class AddMovieRequest(BaseModel):
    """加入个人列表/个人想看/共享片单"""

    user_id: str = Field(default="", description="用户ID")
    movie: MovieIn
    # Fetch full details (credits, genre names) before snapshotting.
    enrich: bool = False


class ToggleWatchedRequest(BaseModel):
    user_id: str = Field(default="", description="用户ID")
    movie: MovieIn


class RatingRequest(BaseModel):
    user_id: str = Field(default="", description="用户ID")
    rating: float = Field(..., description="评分（星级 1-5，想看度 1-10；超出范围会被截断）")


class ScheduleRequest(BaseModel):
    user_id: str = Field(default="", description="操作用户ID")
    # ISO-8601 date or datetime; null clears the schedule.
    date: Optional[str] = None


def to_payload(obj: Any) -> Any:
    """Dataclass (or list of them) -> JSON-ready dict; dates become ISO strings, enums their values."""
    if isinstance(obj, list):
        return [to_payload(o) for o in obj]
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return jsonable_encoder(dataclasses.asdict(obj))
    return jsonable_encoder(obj)
