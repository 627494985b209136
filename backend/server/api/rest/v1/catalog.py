from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query

from application.ports.metadata_client_port import MetadataClientPort
from server.api.rest.dependencies import get_metadata_client
from server.api.rest.errors import domain_errors
from server.models.schemas import to_payload

router = APIRouter(prefix="/api/v1", tags=["catalog-v1"])


@router.get("/movies/search")
async def search_movies(
    query: str = Query(..., min_length=1, description="电影标题"),
    client: MetadataClientPort = Depends(get_metadata_client),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await client.search_by_title(query))


@router.get("/movies/{movie_id}")
async def get_movie_details(
    movie_id: int,
    client: MetadataClientPort = Depends(get_metadata_client),
) -> Dict[str, Any]:
    with domain_errors():
        return to_payload(await client.get_details(movie_id))


@router.get("/movies/{movie_id}/similar")
async def get_similar_movies(
    movie_id: int,
    client: MetadataClientPort = Depends(get_metadata_client),
) -> List[Dict[str, Any]]:
    with domain_errors():
        return to_payload(await client.get_similar(movie_id))
