from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query

from application.recommendation.engine import RecommendationEngine
from application.recommendation.session import RecommendationSession, RecommendationSessions
from server.api.rest.dependencies import get_recommendation_engine, get_recommendation_sessions
from server.api.rest.errors import domain_errors
from server.models.schemas import to_payload

router = APIRouter(prefix="/api/v1", tags=["recommendations-v1"])


def _hidden_payload(session: RecommendationSession) -> Dict[str, Any]:
    return {"hidden": sorted(session.hidden_ids)}


@router.get("/recommendations")
async def get_recommendations(
    user_id: str = Query("", description="用户ID"),
    hidden: List[int] = Query([], description="额外隐藏的电影ID（不持久化）"),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    sessions: RecommendationSessions = Depends(get_recommendation_sessions),
) -> Dict[str, Any]:
    with domain_errors():
        session = sessions.for_user(user_id)
        result = await engine.recommend(user_id, hidden_ids=session.hidden_ids | set(hidden))
    return {"status": result.status.value, "items": to_payload(list(result.items))}


@router.post("/recommendations/hidden/{movie_id}")
async def hide_recommendation(
    movie_id: int,
    user_id: str = Query("", description="用户ID"),
    sessions: RecommendationSessions = Depends(get_recommendation_sessions),
) -> Dict[str, Any]:
    with domain_errors():
        session = sessions.for_user(user_id)
    session.hide(movie_id)
    return _hidden_payload(session)


@router.delete("/recommendations/hidden/{movie_id}")
async def unhide_recommendation(
    movie_id: int,
    user_id: str = Query("", description="用户ID"),
    sessions: RecommendationSessions = Depends(get_recommendation_sessions),
) -> Dict[str, Any]:
    with domain_errors():
        session = sessions.for_user(user_id)
    session.unhide(movie_id)
    return _hidden_payload(session)


@router.delete("/recommendations/hidden")
async def clear_hidden_recommendations(
    user_id: str = Query("", description="用户ID"),
    sessions: RecommendationSessions = Depends(get_recommendation_sessions),
) -> Dict[str, Any]:
    with domain_errors():
        session = sessions.for_user(user_id)
    session.clear()
    return _hidden_payload(session)


@router.get("/profile/taste")
async def get_taste_profile(
    user_id: str = Query("", description="用户ID"),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> Dict[str, Any]:
    with domain_errors():
        return to_payload(await engine.taste_profile(user_id))
