from application.recommendation.engine import RecommendationEngine
from application.recommendation.session import RecommendationSession, RecommendationSessions

__all__ = ["RecommendationEngine", "RecommendationSession", "RecommendationSessions"]
