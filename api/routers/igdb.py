"""
IGDB proxy endpoints.

Requests share the process-wide client from `api.deps`, so the 4 req/s limit
and the cached Twitch token hold across all callers.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.deps import IgdbClientDep
from geeklogg_backend.integrations.igdb.client import IgdbClientError, IgdbNotConfiguredError
from geeklogg_backend.integrations.igdb.token_cache import TokenRefreshError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/igdb", tags=["igdb"])


class IgdbQueryRequest(BaseModel):
    query: str | None = None


@router.post("/games")
def query_games(client: IgdbClientDep, payload: IgdbQueryRequest) -> list[dict[str, Any]]:
    """
    Forward a raw Apicalypse query to IGDB `/games` and return the rows unchanged.
    """
    if not payload.query or not payload.query.strip():
        raise HTTPException(status_code=400, detail="query is required")

    try:
        games = client.query_games(payload.query)
    except IgdbNotConfiguredError as exc:
        logger.error(f"IGDB not configured: {exc}")
        raise HTTPException(status_code=503, detail="IGDB API not configured") from exc
    except TokenRefreshError as exc:
        logger.error(f"Token validation failed: {exc}")
        raise HTTPException(status_code=503, detail="Failed to obtain valid IGDB access token") from exc
    except IgdbClientError as exc:
        logger.error(f"IGDB proxy error: {exc}")
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    logger.info(f"IGDB request successful - {len(games)} results")
    return games


@router.get("/status")
def igdb_status(client: IgdbClientDep) -> JSONResponse:
    """Probe IGDB; anything but a healthy answer is reported as 503."""
    result = client.check_status()
    if result.get("status") != "ok":
        return JSONResponse(status_code=503, content=result)
    return JSONResponse(
        content={
            "status": "ok",
            "message": result.get("message"),
            "tokenCached": result.get("token_cached"),
            "tokenExpiresAt": result.get("token_expires_at"),
        }
    )


@router.post("/refresh-token")
def refresh_token(client: IgdbClientDep) -> JSONResponse:
    client.token_cache.invalidate()
    try:
        client.token_cache.validate_and_refresh_token()
    except TokenRefreshError as exc:
        logger.error(f"Forced token refresh failed: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})

    return JSONResponse(
        content={
            "success": True,
            "message": "Token refreshed successfully",
            "expiresAt": client.token_cache.expires_at_iso(),
        }
    )
