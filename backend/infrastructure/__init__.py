"""
Infrastructure layer.

Adapters behind the application ports: the TMDB catalog client, its response
cache and the watchlist stores (in-memory and PostgreSQL).
"""

__all__ = [
    "cache",
    "config",
    "enrichment",
    "persistence",
]
