"""
Library use cases for a single user's media items.

The repository is any object exposing `find_all`, `find_by_id`, `find_by_type`,
`find_by_status`, `create`, `update(media_id, patch)` and `delete`; the API wires
in `SupabaseMediaRepository`, tests use an in-memory fake.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from geeklogg_backend.models.media import (
    MAX_RATING,
    MIN_RATING,
    CreateMediaRequest,
    MediaEntity,
    MediaType,
    Status,
    UpdateMediaRequest,
    calculate_completion_rate,
    get_recently_updated,
    get_top_rated,
    get_total_hours_spent,
)


class MediaValidationError(ValueError):
    pass


class MediaNotFoundError(LookupError):
    pass


class MediaRepository(Protocol):
    def find_all(self) -> list[MediaEntity]: ...

    def find_by_id(self, media_id: str) -> MediaEntity | None: ...

    def find_by_type(self, media_type: MediaType) -> list[MediaEntity]: ...

    def find_by_status(self, status: Status) -> list[MediaEntity]: ...

    def create(self, request: CreateMediaRequest) -> MediaEntity: ...

    def update(self, media_id: str, patch: dict[str, Any]) -> MediaEntity: ...

    def delete(self, media_id: str) -> None: ...


@dataclass(frozen=True)
class CompletionStats:
    completion_rate: float
    total_hours: float
    average_rating: float
    top_rated_media: list[MediaEntity]


@dataclass(frozen=True)
class Insights:
    most_active_type: MediaType | None
    longest_series: MediaEntity | None
    quickest_completion: MediaEntity | None
    favorite_genres: list[str]


@dataclass(frozen=True)
class MediaStatistics:
    total_count: int
    completed_count: int
    in_progress_count: int
    planned_count: int
    dropped_count: int
    average_rating: float
    total_hours_spent: float
    type_distribution: dict[str, int]
    top_tags: list[dict[str, Any]] = field(default_factory=list)
    monthly_progress: list[dict[str, Any]] = field(default_factory=list)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_values(*, rating: Any, current_page: Any, total_pages: Any) -> None:
    if rating is not None and (rating < MIN_RATING or rating > MAX_RATING):
        raise MediaValidationError("Rating must be between 0 and 5")
    if current_page is not None and current_page < 0:
        raise MediaValidationError("Current page cannot be negative")
    if current_page is not None and total_pages is not None and current_page > total_pages:
        raise MediaValidationError("Current page cannot exceed total pages")


def average_rating(medias: list[MediaEntity]) -> float:
    rated = [m.rating for m in medias if m.rating and m.rating > 0]
    if not rated:
        return 0.0
    return sum(rated) / len(rated)


class MediaUseCases:
    def __init__(self, repository: MediaRepository, *, clock=_now) -> None:
        self.repository = repository
        self._clock = clock

    # --- CRUD ---

    def create_media(self, request: CreateMediaRequest) -> MediaEntity:
        if not (request.title or "").strip():
            raise MediaValidationError("Title is required")
        _validate_values(
            rating=request.rating,
            current_page=request.current_page,
            total_pages=request.total_pages,
        )
        return self.repository.create(request)

    def update_media(self, request: UpdateMediaRequest) -> MediaEntity:
        if not (request.id or "").strip():
            raise MediaValidationError("Media ID is required")

        existing = self.repository.find_by_id(request.id)
        if existing is None:
            raise MediaNotFoundError("Media not found")

        changes = dict(request.changes)
        if "title" in changes and not str(changes["title"] or "").strip():
            raise MediaValidationError("Title cannot be empty")

        # Page bounds hold for the stored row after the patch, not just the patch.
        _validate_values(
            rating=changes.get("rating"),
            current_page=changes.get("current_page", existing.current_page),
            total_pages=changes.get("total_pages", existing.total_pages),
        )
        return self.repository.update(request.id, changes)

    def delete_media(self, media_id: str) -> None:
        if not (media_id or "").strip():
            raise MediaValidationError("Media ID is required")
        if self.repository.find_by_id(media_id) is None:
            raise MediaNotFoundError("Media not found")
        self.repository.delete(media_id)

    def get_media_by_id(self, media_id: str) -> MediaEntity | None:
        if not (media_id or "").strip():
            raise MediaValidationError("Media ID is required")
        return self.repository.find_by_id(media_id)

    def get_all_media(self) -> list[MediaEntity]:
        return self.repository.find_all()

    def get_media_by_type(self, media_type: MediaType) -> list[MediaEntity]:
        return self.repository.find_by_type(media_type)

    def get_media_by_status(self, status: Status) -> list[MediaEntity]:
        return self.repository.find_by_status(status)

    def get_recently_updated(self, limit: int = 10) -> list[MediaEntity]:
        return get_recently_updated(self.get_all_media(), limit)

    def get_top_rated(self, limit: int = 5) -> list[MediaEntity]:
        return get_top_rated(self.get_all_media(), limit)

    # --- Status helpers ---

    def _require(self, media_id: str) -> MediaEntity:
        media = self.get_media_by_id(media_id)
        if media is None:
            raise MediaNotFoundError("Media not found")
        return media

    def mark_as_completed(self, media_id: str) -> MediaEntity:
        media = self._require(media_id)
        changes: dict[str, Any] = {"status": Status.COMPLETED, "end_date": self._clock()}
        if media.type == MediaType.BOOKS and media.total_pages:
            changes["current_page"] = media.total_pages
        return self.update_media(UpdateMediaRequest(id=media_id, changes=changes))

    def mark_as_in_progress(self, media_id: str) -> MediaEntity:
        media = self._require(media_id)
        changes = {
            "status": Status.IN_PROGRESS,
            "start_date": media.start_date or self._clock(),
        }
        return self.update_media(UpdateMediaRequest(id=media_id, changes=changes))

    def update_progress(self, media_id: str, current: float) -> MediaEntity:
        """
        Books track pages and auto-complete on the last page; everything else tracks hours.
        """

        media = self._require(media_id)
        changes: dict[str, Any] = {}
        if media.type == MediaType.BOOKS:
            changes["current_page"] = int(current)
            if media.total_pages and current >= media.total_pages:
                changes["status"] = Status.COMPLETED
                changes["end_date"] = self._clock()
                changes["current_page"] = media.total_pages
        else:
            changes["hours_spent"] = current
        return self.update_media(UpdateMediaRequest(id=media_id, changes=changes))

    # --- Aggregates ---

    def get_completion_stats(self) -> CompletionStats:
        medias = self.get_all_media()
        return CompletionStats(
            completion_rate=calculate_completion_rate(medias),
            total_hours=get_total_hours_spent(medias),
            average_rating=average_rating(medias),
            top_rated_media=get_top_rated(medias),
        )

    def get_insights(self) -> Insights:
        medias = self.get_all_media()
        return Insights(
            most_active_type=_most_active_type(medias),
            longest_series=_longest_series(medias),
            quickest_completion=_quickest_completion(medias),
            favorite_genres=[tag for tag, _ in _tag_counts(medias).most_common(10)],
        )

    def get_statistics(self) -> MediaStatistics:
        return build_statistics(self.get_all_media())


def build_statistics(medias: list[MediaEntity]) -> MediaStatistics:
    by_status = Counter(m.status for m in medias)
    type_distribution = {t.value: 0 for t in MediaType}
    for m in medias:
        type_distribution[m.type.value] += 1

    return MediaStatistics(
        total_count=len(medias),
        completed_count=by_status[Status.COMPLETED],
        in_progress_count=by_status[Status.IN_PROGRESS],
        planned_count=by_status[Status.PLANNED],
        dropped_count=by_status[Status.DROPPED],
        average_rating=average_rating(medias),
        total_hours_spent=get_total_hours_spent(medias),
        type_distribution=type_distribution,
        top_tags=[{"tag": tag, "count": count} for tag, count in _tag_counts(medias).most_common(10)],
        monthly_progress=_monthly_progress(medias),
    )


def _tag_counts(medias: list[MediaEntity]) -> Counter[str]:
    counts: Counter[str] = Counter()
    for m in medias:
        counts.update(m.tags)
    return counts


def _most_active_type(medias: list[MediaEntity]) -> MediaType | None:
    counts = Counter(m.type for m in medias)
    best: MediaType | None = None
    best_count = 0
    # Ties resolve to the first type in declaration order.
    for media_type in MediaType:
        if counts[media_type] > best_count:
            best, best_count = media_type, counts[media_type]
    return best


def _longest_series(medias: list[MediaEntity]) -> MediaEntity | None:
    with_hours = [m for m in medias if m.hours_spent and m.hours_spent > 0]
    if not with_hours:
        return None
    return max(with_hours, key=lambda m: m.hours_spent or 0)


def _quickest_completion(medias: list[MediaEntity]) -> MediaEntity | None:
    completed = [m for m in medias if m.status == Status.COMPLETED and m.start_date and m.end_date]
    if not completed:
        return None
    return min(completed, key=lambda m: m.end_date - m.start_date)


def _monthly_progress(medias: list[MediaEntity]) -> list[dict[str, Any]]:
    months: dict[str, dict[str, int]] = {}
    for m in medias:
        if m.created_at:
            key = m.created_at.strftime("%Y-%m")
            months.setdefault(key, {"completed": 0, "added": 0})["added"] += 1
        if m.status == Status.COMPLETED and m.end_date:
            key = m.end_date.strftime("%Y-%m")
            months.setdefault(key, {"completed": 0, "added": 0})["completed"] += 1
    return [{"month": month, **months[month]} for month in sorted(months)]
