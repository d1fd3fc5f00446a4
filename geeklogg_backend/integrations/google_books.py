"""Google Books volumes search."""
from __future__ import annotations

import logging
import os
from typing import Any

import requests

from geeklogg_backend.integrations.http import ExternalApiError, request_json

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_API_URL = "https://www.googleapis.com/books/v1/volumes"


class GoogleBooksClientError(ExternalApiError):
    pass


def _params(extra: dict[str, Any]) -> dict[str, Any]:
    api_key = (os.getenv("GOOGLE_BOOKS_API_KEY") or "").strip()
    if api_key:
        extra["key"] = api_key
    return extra


def _isbn(identifiers: list[Any]) -> str | None:
    by_type = {ident.get("type"): ident.get("identifier") for ident in identifiers if isinstance(ident, dict)}
    return by_type.get("ISBN_13") or by_type.get("ISBN_10")


def map_volume(item: dict[str, Any]) -> dict[str, Any]:
    info = item.get("volumeInfo") or {}
    images = info.get("imageLinks") or {}
    published = str(info.get("publishedDate") or "")
    year_part = published.split("-")[0]

    return {
        "id": item.get("id"),
        "title": info.get("title") or "Título não informado",
        "description": info.get("description") or None,
        "image": images.get("thumbnail") or images.get("smallThumbnail") or None,
        "year": int(year_part) if year_part.isdigit() else None,
        "genres": list(info.get("categories") or []),
        "authors": list(info.get("authors") or []),
        "publisher": info.get("publisher") or None,
        "page_count": info.get("pageCount") or None,
        "isbn": _isbn(info.get("industryIdentifiers") or []),
        "source": "google-books",
        "original_type": "book",
    }


def search_books(query: str, *, limit: int = 10, session: requests.Session | None = None) -> list[dict[str, Any]]:
    payload = request_json(
        session or requests.Session(),
        GOOGLE_BOOKS_API_URL,
        params=_params({"q": query, "maxResults": int(limit), "printType": "books"}),
        label="Google Books",
        error_cls=GoogleBooksClientError,
    )
    return [map_volume(item) for item in (payload.get("items") or []) if isinstance(item, dict)]


def check_available(*, session: requests.Session | None = None) -> bool:
    try:
        request_json(
            session or requests.Session(),
            GOOGLE_BOOKS_API_URL,
            params=_params({"q": "test", "maxResults": 1}),
            label="Google Books",
            error_cls=GoogleBooksClientError,
            max_attempts=1,
        )
    except GoogleBooksClientError as exc:
        logger.warning(f"Google Books API not available: {exc}")
        return False
    return True
