from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import pytest

from geeklogg_backend.library import MediaNotFoundError, MediaUseCases, MediaValidationError
from geeklogg_backend.models.media import (
    CreateMediaRequest,
    MediaEntity,
    MediaType,
    Status,
    UpdateMediaRequest,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class _InMemoryRepository:
    def __init__(self, medias: list[MediaEntity] | None = None) -> None:
        self.medias = {m.id: m for m in (medias or [])}
        self.updates: list[tuple[str, dict[str, Any]]] = []

    def find_all(self) -> list[MediaEntity]:
        return list(self.medias.values())

    def find_by_id(self, media_id: str) -> MediaEntity | None:
        return self.medias.get(media_id)

    def find_by_type(self, media_type: MediaType) -> list[MediaEntity]:
        return [m for m in self.medias.values() if m.type == media_type]

    def find_by_status(self, status: Status) -> list[MediaEntity]:
        return [m for m in self.medias.values() if m.status == status]

    def create(self, request: CreateMediaRequest) -> MediaEntity:
        media = MediaEntity(
            id=f"m{len(self.medias) + 1}",
            user_id="u1",
            title=request.title,
            type=request.type,
            status=request.status,
            tags=list(request.tags),
            rating=request.rating,
            total_pages=request.total_pages,
            current_page=request.current_page,
            created_at=NOW,
            updated_at=NOW,
        )
        self.medias[media.id] = media
        return media

    def update(self, media_id: str, patch: dict[str, Any]) -> MediaEntity:
        self.updates.append((media_id, dict(patch)))
        media = replace(self.medias[media_id], **patch)
        self.medias[media_id] = media
        return media

    def delete(self, media_id: str) -> None:
        del self.medias[media_id]


def _media(media_id: str, **kwargs) -> MediaEntity:  # noqa: ANN003
    values = {"user_id": "u1", "title": f"Media {media_id}", "type": MediaType.GAMES, "status": Status.PLANNED}
    values.update(kwargs)
    return MediaEntity(id=media_id, **values)


def _use_cases(*medias: MediaEntity) -> tuple[MediaUseCases, _InMemoryRepository]:
    repo = _InMemoryRepository(list(medias))
    return MediaUseCases(repo, clock=lambda: NOW), repo


def test_create_media_requires_title() -> None:
    use_cases, _repo = _use_cases()

    with pytest.raises(MediaValidationError, match="Title is required"):
        use_cases.create_media(CreateMediaRequest(title="  ", type=MediaType.GAMES, status=Status.PLANNED))


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"rating": 6}, "Rating must be between 0 and 5"),
        ({"rating": -1}, "Rating must be between 0 and 5"),
        ({"current_page": -2}, "Current page cannot be negative"),
        ({"current_page": 20, "total_pages": 10}, "Current page cannot exceed total pages"),
    ],
)
def test_create_media_validates_values(kwargs: dict, message: str) -> None:
    use_cases, _repo = _use_cases()
    request = CreateMediaRequest(title="Dune", type=MediaType.BOOKS, status=Status.PLANNED, **kwargs)

    with pytest.raises(MediaValidationError, match=message):
        use_cases.create_media(request)


def test_create_media_persists() -> None:
    use_cases, repo = _use_cases()
    media = use_cases.create_media(
        CreateMediaRequest(title="Dune", type=MediaType.BOOKS, status=Status.PLANNED, total_pages=600)
    )
    assert repo.find_by_id(media.id) == media


def test_update_media_checks_pages_against_stored_total() -> None:
    use_cases, _repo = _use_cases(_media("m1", type=MediaType.BOOKS, total_pages=100, current_page=10))

    with pytest.raises(MediaValidationError, match="exceed"):
        use_cases.update_media(UpdateMediaRequest(id="m1", changes={"current_page": 150}))


def test_update_media_errors() -> None:
    use_cases, _repo = _use_cases(_media("m1"))

    with pytest.raises(MediaValidationError):
        use_cases.update_media(UpdateMediaRequest(id="", changes={}))
    with pytest.raises(MediaNotFoundError):
        use_cases.update_media(UpdateMediaRequest(id="missing", changes={"rating": 3}))
    with pytest.raises(MediaValidationError, match="Title cannot be empty"):
        use_cases.update_media(UpdateMediaRequest(id="m1", changes={"title": ""}))


def test_delete_media() -> None:
    use_cases, repo = _use_cases(_media("m1"))

    use_cases.delete_media("m1")
    assert repo.find_all() == []
    with pytest.raises(MediaNotFoundError):
        use_cases.delete_media("m1")


def test_mark_as_completed_fills_book_pages() -> None:
    use_cases, _repo = _use_cases(_media("m1", type=MediaType.BOOKS, total_pages=320, current_page=12))

    media = use_cases.mark_as_completed("m1")

    assert media.status is Status.COMPLETED
    assert media.end_date == NOW
    assert media.current_page == 320


def test_mark_as_in_progress_keeps_existing_start_date() -> None:
    started = datetime(2025, 1, 1, tzinfo=timezone.utc)
    use_cases, _repo = _use_cases(_media("m1", start_date=started), _media("m2"))

    assert use_cases.mark_as_in_progress("m1").start_date == started
    second = use_cases.mark_as_in_progress("m2")
    assert second.status is Status.IN_PROGRESS
    assert second.start_date == NOW


def test_update_progress_completes_book_on_last_page() -> None:
    use_cases, _repo = _use_cases(_media("m1", type=MediaType.BOOKS, total_pages=200, current_page=0))

    halfway = use_cases.update_progress("m1", 100)
    assert halfway.current_page == 100
    assert halfway.status is Status.PLANNED

    done = use_cases.update_progress("m1", 250)
    assert done.current_page == 200
    assert done.status is Status.COMPLETED
    assert done.end_date == NOW


def test_update_progress_tracks_hours_for_other_types() -> None:
    use_cases, repo = _use_cases(_media("m1", type=MediaType.GAMES))

    assert use_cases.update_progress("m1", 12.5).hours_spent == 12.5
    assert repo.updates == [("m1", {"hours_spent": 12.5})]


def test_progress_on_missing_media_raises() -> None:
    use_cases, _repo = _use_cases()
    with pytest.raises(MediaNotFoundError):
        use_cases.update_progress("nope", 1)


def test_completion_stats() -> None:
    use_cases, _repo = _use_cases(
        _media("1", status=Status.COMPLETED, rating=4, hours_spent=10),
        _media("2", status=Status.IN_PROGRESS, rating=0, hours_spent=5),
        _media("3", status=Status.PLANNED, rating=2),
        _media("4", status=Status.COMPLETED),
    )

    stats = use_cases.get_completion_stats()

    assert stats.completion_rate == 50.0
    assert stats.total_hours == 15
    assert stats.average_rating == 3.0
    assert [m.id for m in stats.top_rated_media] == ["1", "3"]


def test_insights() -> None:
    use_cases, _repo = _use_cases(
        _media(
            "1",
            type=MediaType.ANIME,
            status=Status.COMPLETED,
            hours_spent=80,
            tags=["shonen", "action"],
            start_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            end_date=datetime(2025, 3, 1, tzinfo=timezone.utc),
        ),
        _media(
            "2",
            type=MediaType.ANIME,
            status=Status.COMPLETED,
            hours_spent=5,
            tags=["action"],
            start_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
            end_date=datetime(2025, 2, 3, tzinfo=timezone.utc),
        ),
        _media("3", type=MediaType.BOOKS, tags=["scifi"]),
    )

    insights = use_cases.get_insights()

    assert insights.most_active_type is MediaType.ANIME
    assert insights.longest_series.id == "1"
    assert insights.quickest_completion.id == "2"
    assert insights.favorite_genres[0] == "action"
    assert set(insights.favorite_genres) == {"action", "shonen", "scifi"}


def test_insights_for_empty_library() -> None:
    use_cases, _repo = _use_cases()
    insights = use_cases.get_insights()

    assert insights.most_active_type is None
    assert insights.longest_series is None
    assert insights.quickest_completion is None
    assert insights.favorite_genres == []


def test_statistics() -> None:
    use_cases, _repo = _use_cases(
        _media(
            "1",
            type=MediaType.MOVIES,
            status=Status.COMPLETED,
            rating=5,
            tags=["scifi"],
            created_at=datetime(2025, 1, 5, tzinfo=timezone.utc),
            end_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
        ),
        _media("2", status=Status.DROPPED, created_at=datetime(2025, 2, 10, tzinfo=timezone.utc)),
        _media("3", status=Status.IN_PROGRESS, hours_spent=3),
    )

    stats = use_cases.get_statistics()

    assert stats.total_count == 3
    assert (stats.completed_count, stats.in_progress_count, stats.planned_count, stats.dropped_count) == (1, 1, 0, 1)
    assert stats.average_rating == 5.0
    assert stats.total_hours_spent == 3
    assert stats.type_distribution["games"] == 2
    assert stats.type_distribution["movies"] == 1
    assert stats.type_distribution["dorama"] == 0
    assert stats.top_tags == [{"tag": "scifi", "count": 1}]
    assert stats.monthly_progress == [
        {"month": "2025-01", "completed": 0, "added": 1},
        {"month": "2025-02", "completed": 1, "added": 1},
    ]
