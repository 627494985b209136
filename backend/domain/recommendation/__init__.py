from domain.recommendation.explain import explain
from domain.recommendation.models import (
    Explanation,
    ExplanationKind,
    RatedName,
    Recommendation,
    RecommendationResult,
    RecommendationStatus,
    TasteProfile,
)
from domain.recommendation.scoring import rank_candidates, score_candidate
from domain.recommendation.taste_profile import build_taste_profile

__all__ = [
    "Explanation",
    "ExplanationKind",
    "RatedName",
    "Recommendation",
    "RecommendationResult",
    "RecommendationStatus",
    "TasteProfile",
    "build_taste_profile",
    "explain",
    "rank_candidates",
    "score_candidate",
]
