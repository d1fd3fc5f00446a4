"""
External catalogue search used when adding a media to the library.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from api.deps import ExternalMediaDep
from geeklogg_backend.integrations.http import ExternalApiError
from geeklogg_backend.models.media import MediaType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


@router.get("")
def search_media(
    service: ExternalMediaDep,
    query: str = Query(..., min_length=1),
    type: MediaType = Query(...),
    limit: int = Query(default=10, ge=1, le=40),
) -> list[dict[str, Any]]:
    """
    Search the catalogue matching `type`. Queries shorter than two characters return [].
    """
    try:
        return service.search_media(query, type, limit=limit)
    except ExternalApiError as exc:
        logger.error(f"Search failed for type={type.value}: {exc}")
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except RuntimeError as exc:
        # Missing API key for the selected catalogue.
        logger.error(f"Search not configured for type={type.value}: {exc}")
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/status")
def search_status(service: ExternalMediaDep) -> dict[str, bool]:
    return service.check_api_availability()
