"""
Movie catalog enrichment.

TMDB is the metadata catalog: title search, full details with credits, and the
recommendations endpoint used as the similar-movies pool.
"""

from infrastructure.enrichment.tmdb_client import TMDBClient, parse_movie_details, parse_movie_result

__all__ = [
    "TMDBClient",
    "parse_movie_details",
    "parse_movie_result",
]
