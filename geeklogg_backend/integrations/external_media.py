"""
Multi-source media search.

Routes a library search to the catalogue that covers the media type:
Google Books for books, TMDb for movies/series/anime/dorama and IGDB for games.
"""
from __future__ import annotations

import logging
from typing import Any

import requests

from geeklogg_backend.integrations import google_books
from geeklogg_backend.integrations.igdb.client import IgdbClient, IgdbClientError
from geeklogg_backend.integrations.igdb.token_cache import TokenRefreshError
from geeklogg_backend.integrations.tmdb import client as tmdb
from geeklogg_backend.models.media import MediaType

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


class ExternalMediaService:
    def __init__(
        self,
        igdb_client: IgdbClient | None = None,
        *,
        tmdb_api_key: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.igdb_client = igdb_client
        self.tmdb_api_key = tmdb_api_key
        self.session = session or requests.Session()

    def search_books(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        return google_books.search_books(query, limit=limit, session=self.session)

    def search_movies(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        return tmdb.search_movies(query, limit=limit, api_key=self.tmdb_api_key, session=self.session)

    def search_tv_shows(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        return tmdb.search_tv_shows(query, limit=limit, api_key=self.tmdb_api_key, session=self.session)

    def search_games(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        # Game search degrades to no results instead of failing the request.
        if self.igdb_client is None or not self.igdb_client.configured:
            logger.warning("IGDB not configured; game search returns no results")
            return []
        try:
            return self.igdb_client.search_games(query, limit=limit)
        except (IgdbClientError, TokenRefreshError) as exc:
            logger.error(f"Error searching games: {exc}")
            return []

    def search_media(self, query: str, media_type: MediaType | str, limit: int = 10) -> list[dict[str, Any]]:
        if not query or len(query.strip()) < MIN_QUERY_LENGTH:
            return []

        media_type = MediaType(media_type)
        if media_type == MediaType.BOOKS:
            return self.search_books(query, limit)
        if media_type == MediaType.MOVIES:
            return self.search_movies(query, limit)
        if media_type == MediaType.GAMES:
            return self.search_games(query, limit)
        if media_type == MediaType.SERIES:
            return [r for r in self.search_tv_shows(query, limit) if r["original_type"] != "anime"]
        if media_type == MediaType.ANIME:
            return [r for r in self.search_tv_shows(query, limit) if r["original_type"] == "anime"]
        if media_type == MediaType.DORAMA:
            return [r for r in self.search_tv_shows(query, limit) if tmdb.detect_if_dorama(r)]
        return []

    def get_movie_details(self, tmdb_id: int) -> dict[str, Any]:
        try:
            return tmdb.fetch_movie_details(tmdb_id, api_key=self.tmdb_api_key, session=self.session)
        except tmdb.TmdbClientError as exc:
            logger.error(f"Error fetching movie details: {exc}")
            return {}

    def get_tv_show_details(self, tmdb_id: int) -> dict[str, Any]:
        try:
            return tmdb.fetch_tv_details(tmdb_id, api_key=self.tmdb_api_key, session=self.session)
        except tmdb.TmdbClientError as exc:
            logger.error(f"Error fetching series details: {exc}")
            return {}

    def check_api_availability(self) -> dict[str, bool]:
        igdb_ok = False
        if self.igdb_client is not None:
            igdb_ok = self.igdb_client.check_status().get("status") == "ok"
        return {
            "google_books": google_books.check_available(session=self.session),
            "tmdb": tmdb.check_available(api_key=self.tmdb_api_key, session=self.session),
            "igdb": igdb_ok,
        }
