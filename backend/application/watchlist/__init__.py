from application.watchlist.invalidation import MUTATION_KEYS, Invalidation, QueryKey
from application.watchlist.state_manager import WatchlistStateManager

__all__ = [
    "Invalidation",
    "MUTATION_KEYS",
    "QueryKey",
    "WatchlistStateManager",
]
