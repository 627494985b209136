from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from application.watchlist.state_manager import WatchlistStateManager
from config.settings import ACTIVITY_DEFAULT_DAYS, WATCHED_FEED_LIMIT
from server.api.rest.dependencies import get_state_manager
from server.api.rest.errors import domain_errors
from server.models.schemas import (
    AddMovieRequest,
    RatingRequest,
    ScheduleRequest,
    ToggleWatchedRequest,
    to_payload,
)

router = APIRouter(prefix="/api/v1", tags=["watchlist-v1"])


# ----- personal list -----


@router.get("/personal-list")
async def get_personal_list(
    user_id: str = Query("", description="用户ID"),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await manager.get_personal_list(user_id))


@router.post("/personal-list", status_code=201)
async def add_to_personal_list(
    req: AddMovieRequest,
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        entry = await manager.add_to_personal_list(req.user_id, req.movie.to_domain(), enrich=req.enrich)
    return to_payload(entry)


@router.delete("/personal-list/{movie_id}")
async def remove_from_personal(
    movie_id: int,
    user_id: str = Query("", description="用户ID"),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        removed = await manager.remove_from_personal(user_id, movie_id)
    return {"movie_id": movie_id, "removed": removed}


# ----- personal watchlist (want-to-see votes) -----


@router.get("/personal-watchlist")
async def get_personal_watchlist(
    user_id: str = Query("", description="用户ID"),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await manager.get_personal_watchlist(user_id))


@router.post("/personal-watchlist", status_code=201)
async def add_to_personal_watchlist(
    req: AddMovieRequest,
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        entry = await manager.add_to_personal_watchlist(req.user_id, req.movie.to_domain(), enrich=req.enrich)
    return to_payload(entry)


@router.put("/personal-watchlist/{movie_id}/rating")
async def rate_want_to_see(
    movie_id: int,
    req: RatingRequest,
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        entry = await manager.rate_want_to_see(req.user_id, movie_id, req.rating)
    return to_payload(entry)


@router.delete("/personal-watchlist/{movie_id}")
async def remove_from_personal_watchlist(
    movie_id: int,
    user_id: str = Query("", description="用户ID"),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        removed = await manager.remove_from_personal_watchlist(user_id, movie_id)
    return {"movie_id": movie_id, "removed": removed}


# ----- shared watchlist -----


@router.get("/shared-watchlist")
async def get_shared_watchlist(
    user_id: str = Query("", description="用户ID"),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await manager.get_shared_watchlist(user_id))


@router.post("/shared-watchlist", status_code=201)
async def add_to_shared(
    req: AddMovieRequest,
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        entry = await manager.add_to_shared(req.user_id, req.movie.to_domain(), enrich=req.enrich)
    return to_payload(entry)


@router.delete("/shared-watchlist/{movie_id}")
async def remove_from_shared(
    movie_id: int,
    user_id: str = Query("", description="操作用户ID"),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        removed = await manager.remove_from_shared(user_id, movie_id)
    return {"movie_id": movie_id, "removed": removed}


@router.put("/shared-watchlist/{movie_id}/schedule")
async def schedule_movie(
    movie_id: int,
    req: ScheduleRequest,
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        entry = await manager.schedule_movie(req.user_id, movie_id, req.date)
    # Unknown movies are not an error: nothing was scheduled.
    return {"movie_id": movie_id, "updated": entry is not None, "entry": to_payload(entry)}


@router.get("/schedule")
async def get_schedule(
    user_id: str = Query("", description="用户ID"),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await manager.get_schedule(user_id))


# ----- watched / ratings / activity -----


@router.get("/watched")
async def get_watched_movies(
    user_id: Optional[str] = Query(default=None, description="用户ID（为空时返回全组动态）"),
    limit: int = Query(WATCHED_FEED_LIMIT, ge=1, le=200),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await manager.get_watched_movies(user_id, limit=limit))


@router.post("/watched/toggle")
async def toggle_watched(
    req: ToggleWatchedRequest,
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    movie = req.movie.to_domain()
    with domain_errors():
        watched = await manager.toggle_watched(req.user_id, movie)
    return {"movie_id": movie.id, "watched": watched}


@router.get("/ratings")
async def get_ratings(
    user_id: str = Query("", description="用户ID"),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await manager.get_ratings(user_id))


@router.put("/ratings/{movie_id}")
async def rate_movie(
    movie_id: int,
    req: RatingRequest,
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> Dict[str, Any]:
    with domain_errors():
        rating = await manager.rate_movie(req.user_id, movie_id, req.rating)
    return to_payload(rating)


@router.get("/activity")
async def get_recent_activity(
    days: int = Query(ACTIVITY_DEFAULT_DAYS, ge=1, le=365),
    limit: int = Query(20, ge=1, le=200),
    manager: WatchlistStateManager = Depends(get_state_manager),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await manager.get_recent_activity(days, limit=limit))
