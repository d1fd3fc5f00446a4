from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MediaType(str, Enum):
    GAMES = "games"
    ANIME = "anime"
    SERIES = "series"
    BOOKS = "books"
    MOVIES = "movies"
    DORAMA = "dorama"


class Status(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    DROPPED = "dropped"
    PLANNED = "planned"


MIN_RATING = 0.0
MAX_RATING = 5.0


@dataclass(frozen=True)
class MediaEntity:
    """
    A user's tracked media item (maps to `core.medias`).

    Each row belongs to exactly one user through `user_id`.
    """

    id: str
    user_id: str
    title: str
    type: MediaType
    status: Status
    tags: list[str] = field(default_factory=list)
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
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def progress(self) -> MediaProgress | None:
        if self.total_pages is None:
            return None
        return MediaProgress(self.current_page or 0, self.total_pages)


@dataclass(frozen=True)
class CreateMediaRequest:
    title: str
    type: MediaType
    status: Status
    tags: list[str] = field(default_factory=list)
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


@dataclass(frozen=True)
class UpdateMediaRequest:
    """
    Partial update; only fields listed in `changes` are written.
    """

    id: str
    changes: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.changes.get(key, default)


class MediaProgress:
    def __init__(self, current: float, total: float) -> None:
        if current < 0 or total < 0:
            raise ValueError("Progress values must be non-negative")
        if current > total:
            raise ValueError("Current progress cannot exceed total")
        self.current = current
        self.total = total

    @property
    def percentage(self) -> float:
        return (self.current / self.total) * 100 if self.total > 0 else 0.0

    @property
    def is_completed(self) -> bool:
        return self.current >= self.total and self.total > 0


class MediaRating:
    def __init__(self, value: float) -> None:
        if value < MIN_RATING or value > MAX_RATING:
            raise ValueError("Rating must be between 0 and 5")
        self._value = value

    @property
    def score(self) -> float:
        return self._value

    @property
    def stars(self) -> str:
        return "⭐" * int(self._value)


# --- Row conversion ---

_DATETIME_FIELDS = ("start_date", "end_date", "created_at", "updated_at")


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def media_from_row(row: Mapping[str, Any]) -> MediaEntity:
    tags = row.get("tags") or []
    return MediaEntity(
        id=str(row["id"]),
        user_id=str(row.get("user_id") or ""),
        title=str(row.get("title") or ""),
        type=MediaType(row["type"]),
        status=Status(row["status"]),
        tags=[str(t) for t in tags if isinstance(t, str)],
        cover=row.get("cover"),
        platform=row.get("platform"),
        rating=row.get("rating"),
        hours_spent=row.get("hours_spent"),
        total_pages=row.get("total_pages"),
        current_page=row.get("current_page"),
        start_date=_parse_datetime(row.get("start_date")),
        end_date=_parse_datetime(row.get("end_date")),
        external_link=row.get("external_link"),
        description=row.get("description"),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def to_row_values(values: Mapping[str, Any]) -> dict[str, Any]:
    """
    Convert entity/request values into JSON-safe column values.
    """

    row: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Enum):
            row[key] = value.value
        elif key in _DATETIME_FIELDS:
            row[key] = _format_datetime(_parse_datetime(value))
        elif key == "tags":
            row[key] = list(value or [])
        else:
            row[key] = value
    return row


def media_to_dict(media: MediaEntity) -> dict[str, Any]:
    return to_row_values(
        {
            "id": media.id,
            "user_id": media.user_id,
            "title": media.title,
            "type": media.type,
            "status": media.status,
            "tags": media.tags,
            "cover": media.cover,
            "platform": media.platform,
            "rating": media.rating,
            "hours_spent": media.hours_spent,
            "total_pages": media.total_pages,
            "current_page": media.current_page,
            "start_date": media.start_date,
            "end_date": media.end_date,
            "external_link": media.external_link,
            "description": media.description,
            "created_at": media.created_at,
            "updated_at": media.updated_at,
        }
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- Domain service ---


def calculate_completion_rate(medias: Iterable[MediaEntity]) -> float:
    items = list(medias)
    if not items:
        return 0.0
    completed = sum(1 for m in items if m.status == Status.COMPLETED)
    return (completed / len(items)) * 100


def get_top_rated(medias: Iterable[MediaEntity], limit: int = 5) -> list[MediaEntity]:
    rated = [m for m in medias if m.rating and m.rating > 0]
    rated.sort(key=lambda m: m.rating or 0, reverse=True)
    return rated[:limit]


def get_total_hours_spent(medias: Iterable[MediaEntity]) -> float:
    return sum((m.hours_spent or 0) for m in medias)


def get_media_by_type(medias: Iterable[MediaEntity], media_type: MediaType) -> list[MediaEntity]:
    return [m for m in medias if m.type == media_type]


def get_recently_updated(medias: Iterable[MediaEntity], limit: int = 10) -> list[MediaEntity]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)

    def _key(m: MediaEntity) -> datetime:
        value = m.updated_at or epoch
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    return sorted(medias, key=_key, reverse=True)[:limit]
