"""Authoritative collection endpoints."""

from typing import Literal

from fastapi import APIRouter, Query, Response

from csvstage.api.deps import ServiceDep
from csvstage.api.routers.staging import csv_response

router = APIRouter()


@router.get("/collections/{collection}/export")
async def export_collection(
    collection: str,
    service: ServiceDep,
    headers: Literal["original", "short"] = Query("original"),
    include_id: bool = Query(False),
) -> Response:
    """Every document of the collection as CSV."""
    filename, content = await service.export_collection(collection, headers, include_id)
    return csv_response(filename, content)
