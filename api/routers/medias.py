"""
The signed-in user's media library.

Every route runs as the caller (Bearer token), so the repository only ever sees
rows where `user_id` matches the authenticated user.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from api.auth import CurrentUser, UserSupabaseClient
from geeklogg_backend.library import MediaNotFoundError, MediaUseCases, MediaValidationError
from geeklogg_backend.library.use_cases import build_statistics
from geeklogg_backend.models.media import (
    CreateMediaRequest,
    MediaEntity,
    MediaType,
    Status,
    UpdateMediaRequest,
    calculate_completion_rate,
    get_top_rated,
    media_to_dict,
)
from geeklogg_backend.repositories.medias import MediaRepositoryError, SupabaseMediaRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/medias", tags=["medias"])


# --- Pydantic models ---


class MediaCreate(BaseModel):
    title: str
    type: MediaType
    status: Status = Status.PLANNED
    tags: list[str] = Field(default_factory=list)
    cover: str | None = None
    platform: str | None = None
    rating: float | None = None
    hours_spent: float | None = None
    total_pages: int | None = None
    current_page: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    external_link: str | None = None
    description: str | None = None


class MediaUpdate(BaseModel):
    title: str | None = None
    type: MediaType | None = None
    status: Status | None = None
    tags: list[str] | None = None
    cover: str | None = None
    platform: str | None = None
    rating: float | None = None
    hours_spent: float | None = None
    total_pages: int | None = None
    current_page: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    external_link: str | None = None
    description: str | None = None


class MediaResponse(BaseModel):
    id: str
    user_id: str
    title: str
    type: MediaType
    status: Status
    tags: list[str]
    cover: str | None
    platform: str | None
    rating: float | None
    hours_spent: float | None
    total_pages: int | None
    current_page: int | None
    start_date: datetime | None
    end_date: datetime | None
    external_link: str | None
    description: str | None
    created_at: datetime | None
    updated_at: datetime | None


class ProgressUpdate(BaseModel):
    current: float = Field(..., ge=0)


class StatsResponse(BaseModel):
    total_count: int
    completed_count: int
    in_progress_count: int
    planned_count: int
    dropped_count: int
    completion_rate: float
    average_rating: float
    total_hours_spent: float
    type_distribution: dict[str, int]
    top_tags: list[dict[str, Any]]
    monthly_progress: list[dict[str, Any]]
    top_rated_media: list[MediaResponse]


class InsightsResponse(BaseModel):
    most_active_type: MediaType | None
    longest_series: MediaResponse | None
    quickest_completion: MediaResponse | None
    favorite_genres: list[str]


# --- Helpers ---


def _use_cases(db: Any, user_id: str) -> MediaUseCases:
    return MediaUseCases(SupabaseMediaRepository(db, user_id))


def _dump(media: MediaEntity | None) -> dict[str, Any] | None:
    return media_to_dict(media) if media is not None else None


def _raise_for_library_error(exc: Exception, context: str) -> None:
    if isinstance(exc, MediaValidationError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, MediaNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logger.error(f"Error {context}: {exc}")
    raise HTTPException(status_code=502, detail=f"Database error while {context}") from exc


_LIBRARY_ERRORS = (MediaValidationError, MediaNotFoundError, MediaRepositoryError)


# --- Endpoints ---


@router.get("", response_model=list[MediaResponse])
def list_medias(
    user: CurrentUser,
    db: UserSupabaseClient,
    type: MediaType | None = Query(default=None),
    status: Status | None = Query(default=None),
) -> list[dict]:
    """List the user's medias, optionally filtered by type or status."""
    use_cases = _use_cases(db, user.id)
    try:
        if type is not None:
            medias = use_cases.get_media_by_type(type)
        elif status is not None:
            medias = use_cases.get_media_by_status(status)
        else:
            medias = use_cases.get_all_media()
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "listing medias")
    if type is not None and status is not None:
        medias = [m for m in medias if m.status == status]
    return [media_to_dict(m) for m in medias]


@router.get("/stats", response_model=StatsResponse)
def get_stats(user: CurrentUser, db: UserSupabaseClient) -> dict:
    use_cases = _use_cases(db, user.id)
    try:
        medias = use_cases.get_all_media()
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "computing statistics")

    return {
        **asdict(build_statistics(medias)),
        "completion_rate": calculate_completion_rate(medias),
        "top_rated_media": [media_to_dict(m) for m in get_top_rated(medias)],
    }


@router.get("/insights", response_model=InsightsResponse)
def get_insights(user: CurrentUser, db: UserSupabaseClient) -> dict:
    try:
        insights = _use_cases(db, user.id).get_insights()
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "computing insights")

    return {
        "most_active_type": insights.most_active_type,
        "longest_series": _dump(insights.longest_series),
        "quickest_completion": _dump(insights.quickest_completion),
        "favorite_genres": insights.favorite_genres,
    }


@router.post("", response_model=MediaResponse, status_code=201)
def create_media(user: CurrentUser, db: UserSupabaseClient, payload: MediaCreate) -> dict:
    try:
        media = _use_cases(db, user.id).create_media(CreateMediaRequest(**payload.model_dump()))
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "creating media")
    logger.info(f"Media {media.id} created for user {user.id}")
    return media_to_dict(media)


@router.get("/{media_id}", response_model=MediaResponse)
def get_media(media_id: str, user: CurrentUser, db: UserSupabaseClient) -> dict:
    try:
        media = _use_cases(db, user.id).get_media_by_id(media_id)
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "fetching media")
    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return media_to_dict(media)


@router.patch("/{media_id}", response_model=MediaResponse)
def update_media(media_id: str, user: CurrentUser, db: UserSupabaseClient, payload: MediaUpdate) -> dict:
    """Partial update; only the fields present in the body are written."""
    changes = payload.model_dump(exclude_unset=True)
    # Required columns cannot be nulled out.
    for key in ("title", "type", "status"):
        if key in changes and changes[key] is None:
            changes.pop(key)
    try:
        media = _use_cases(db, user.id).update_media(UpdateMediaRequest(id=media_id, changes=changes))
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "updating media")
    return media_to_dict(media)


@router.delete("/{media_id}", status_code=204)
def delete_media(media_id: str, user: CurrentUser, db: UserSupabaseClient) -> None:
    try:
        _use_cases(db, user.id).delete_media(media_id)
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "deleting media")
    logger.info(f"Media {media_id} deleted for user {user.id}")


@router.post("/{media_id}/complete", response_model=MediaResponse)
def complete_media(media_id: str, user: CurrentUser, db: UserSupabaseClient) -> dict:
    try:
        media = _use_cases(db, user.id).mark_as_completed(media_id)
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "completing media")
    return media_to_dict(media)


@router.post("/{media_id}/start", response_model=MediaResponse)
def start_media(media_id: str, user: CurrentUser, db: UserSupabaseClient) -> dict:
    try:
        media = _use_cases(db, user.id).mark_as_in_progress(media_id)
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "starting media")
    return media_to_dict(media)


@router.post("/{media_id}/progress", response_model=MediaResponse)
def update_progress(media_id: str, user: CurrentUser, db: UserSupabaseClient, payload: ProgressUpdate) -> dict:
    """Pages for books (auto-completes on the last page), hours for everything else."""
    try:
        media = _use_cases(db, user.id).update_progress(media_id, payload.current)
    except _LIBRARY_ERRORS as exc:
        _raise_for_library_error(exc, "updating progress")
    return media_to_dict(media)
