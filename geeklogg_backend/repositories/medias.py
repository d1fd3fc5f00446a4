from __future__ import annotations

from typing import Any, Mapping
from uuid import uuid4

from supabase import Client

from geeklogg_backend.db.supabase import MEDIAS_TABLE, core_table
from geeklogg_backend.models.media import (
    CreateMediaRequest,
    MediaEntity,
    MediaType,
    Status,
    media_from_row,
    to_row_values,
    utc_now,
)


class MediaRepositoryError(RuntimeError):
    pass


def _raise_for_supabase_error(response: Any, context: str) -> None:
    if hasattr(response, "error") and response.error:
        raise MediaRepositoryError(f"Supabase error during {context}: {response.error}")


def _rows(response: Any) -> list[dict[str, Any]]:
    data = response.data or []
    if isinstance(data, list):
        return [row for row in data if isinstance(row, dict)]
    return []


def _medias(db: Client):
    return core_table(db, MEDIAS_TABLE)


def list_medias(db: Client, user_id: str) -> list[MediaEntity]:
    response = _medias(db).select("*").eq("user_id", user_id).order("updated_at", desc=True).execute()
    _raise_for_supabase_error(response, "listing medias")
    return [media_from_row(row) for row in _rows(response)]


def get_media(db: Client, user_id: str, media_id: str) -> MediaEntity | None:
    response = _medias(db).select("*").eq("user_id", user_id).eq("id", media_id).limit(1).execute()
    _raise_for_supabase_error(response, "fetching media")
    rows = _rows(response)
    return media_from_row(rows[0]) if rows else None


def find_by_type(db: Client, user_id: str, media_type: MediaType) -> list[MediaEntity]:
    response = (
        _medias(db)
        .select("*")
        .eq("user_id", user_id)
        .eq("type", MediaType(media_type).value)
        .order("updated_at", desc=True)
        .execute()
    )
    _raise_for_supabase_error(response, "listing medias by type")
    return [media_from_row(row) for row in _rows(response)]


def find_by_status(db: Client, user_id: str, status: Status) -> list[MediaEntity]:
    response = (
        _medias(db)
        .select("*")
        .eq("user_id", user_id)
        .eq("status", Status(status).value)
        .order("updated_at", desc=True)
        .execute()
    )
    _raise_for_supabase_error(response, "listing medias by status")
    return [media_from_row(row) for row in _rows(response)]


def insert_media(db: Client, user_id: str, request: CreateMediaRequest) -> MediaEntity:
    now = utc_now()
    payload = to_row_values(
        {
            "id": str(uuid4()),
            "user_id": user_id,
            "title": request.title.strip(),
            "type": request.type,
            "status": request.status,
            "tags": request.tags,
            "cover": request.cover,
            "platform": request.platform,
            "rating": request.rating,
            "hours_spent": request.hours_spent,
            "total_pages": request.total_pages,
            "current_page": request.current_page,
            "start_date": request.start_date,
            "end_date": request.end_date,
            "external_link": request.external_link,
            "description": request.description,
            "created_at": now,
            "updated_at": now,
        }
    )
    response = _medias(db).insert(payload).execute()
    _raise_for_supabase_error(response, "inserting media")
    rows = _rows(response)
    if rows:
        return media_from_row(rows[0])
    raise MediaRepositoryError("Supabase insert returned no data for media.")


def update_media(db: Client, user_id: str, media_id: str, patch: Mapping[str, Any]) -> MediaEntity:
    payload = to_row_values({**dict(patch), "updated_at": utc_now()})
    payload.pop("id", None)
    payload.pop("user_id", None)
    response = _medias(db).update(payload).eq("user_id", user_id).eq("id", media_id).execute()
    _raise_for_supabase_error(response, "updating media")
    rows = _rows(response)
    if rows:
        return media_from_row(rows[0])
    raise MediaRepositoryError("Supabase update returned no data for media.")


def delete_media(db: Client, user_id: str, media_id: str) -> None:
    response = _medias(db).delete().eq("user_id", user_id).eq("id", media_id).execute()
    _raise_for_supabase_error(response, "deleting media")


def count_medias(db: Client, user_id: str) -> int:
    response = _medias(db).select("id", count="exact").eq("user_id", user_id).execute()
    _raise_for_supabase_error(response, "counting medias")
    count = getattr(response, "count", None)
    if isinstance(count, int):
        return count
    return len(_rows(response))


class SupabaseMediaRepository:
    """
    Media store bound to one user (the `users/{uid}/medias` scope).
    """

    def __init__(self, db: Client, user_id: str) -> None:
        self.db = db
        self.user_id = user_id

    def find_all(self) -> list[MediaEntity]:
        return list_medias(self.db, self.user_id)

    def find_by_id(self, media_id: str) -> MediaEntity | None:
        return get_media(self.db, self.user_id, media_id)

    def find_by_type(self, media_type: MediaType) -> list[MediaEntity]:
        return find_by_type(self.db, self.user_id, media_type)

    def find_by_status(self, status: Status) -> list[MediaEntity]:
        return find_by_status(self.db, self.user_id, status)

    def create(self, request: CreateMediaRequest) -> MediaEntity:
        return insert_media(self.db, self.user_id, request)

    def update(self, media_id: str, patch: Mapping[str, Any]) -> MediaEntity:
        return update_media(self.db, self.user_id, media_id, patch)

    def delete(self, media_id: str) -> None:
        delete_media(self.db, self.user_id, media_id)

    def count(self) -> int:
        return count_medias(self.db, self.user_id)
