from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests

from geeklogg_backend.integrations.igdb.rate_limiter import RateLimiter
from geeklogg_backend.integrations.igdb.token_cache import TokenCache, TokenRefreshError

logger = logging.getLogger(__name__)

IGDB_API_BASE_URL = "https://api.igdb.com/v4"
IGDB_IMAGE_BASE_URL = "https://images.igdb.com/igdb/image/upload"
USER_AGENT = "GeekLog/1.0"

# IGDB website category for a game's official site.
OFFICIAL_WEBSITE_CATEGORY = 1

SEARCH_FIELDS = (
    "fields id, name, summary, cover.url, cover.image_id, first_release_date,\n"
    "       genres.name, platforms.name, platforms.abbreviation, rating, rating_count,\n"
    "       involved_companies.company.name, involved_companies.developer,\n"
    "       involved_companies.publisher, websites.url, websites.category;"
)

DETAIL_FIELDS = (
    "fields id, name, summary, cover.url, cover.image_id, first_release_date,\n"
    "       genres.name, platforms.name, platforms.abbreviation, rating, rating_count,\n"
    "       screenshots.url, screenshots.image_id, involved_companies.company.name,\n"
    "       involved_companies.developer, involved_companies.publisher,\n"
    "       websites.url, websites.category, game_modes.name,\n"
    "       player_perspectives.name, themes.name;"
)

LIST_FIELDS = (
    "fields id, name, summary, cover.url, cover.image_id, first_release_date,\n"
    "       genres.name, platforms.name, platforms.abbreviation, rating, rating_count;"
)


class IgdbClientError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, body_snippet: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body_snippet = body_snippet


class IgdbNotConfiguredError(IgdbClientError):
    pass


@dataclass(frozen=True)
class IgdbSearchFilters:
    platforms: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    year_range: tuple[int, int] | None = None
    rating_range: tuple[float, float] | None = None


def _quote(value: str) -> str:
    return '"' + str(value).replace('"', '\\"') + '"'


def build_search_query(
    query: str,
    *,
    limit: int = 20,
    offset: int = 0,
    filters: IgdbSearchFilters | None = None,
) -> str:
    """
    Build an Apicalypse body for `/games` full-text search.
    """

    where = [f"search {_quote(query)}"]
    if filters is not None:
        if filters.platforms:
            where.append(f"platforms.name = ({','.join(_quote(p) for p in filters.platforms)})")
        if filters.genres:
            where.append(f"genres.name = ({','.join(_quote(g) for g in filters.genres)})")
        if filters.year_range:
            start_year, end_year = filters.year_range
            start = int(datetime(start_year, 1, 1, tzinfo=timezone.utc).timestamp())
            end = int(datetime(end_year + 1, 1, 1, tzinfo=timezone.utc).timestamp())
            where.append(f"first_release_date >= {start} & first_release_date < {end}")
        if filters.rating_range:
            low, high = filters.rating_range
            where.append(f"rating >= {low} & rating <= {high}")

    parts = [
        SEARCH_FIELDS,
        f"where {' & '.join(where)};",
        "sort rating desc;",
        f"limit {int(limit)};",
    ]
    if offset > 0:
        parts.append(f"offset {int(offset)};")
    return "\n".join(parts)


def cover_url(image_id: str) -> str:
    return f"{IGDB_IMAGE_BASE_URL}/t_cover_big/{image_id}.jpg"


def screenshot_url(image_id: str) -> str:
    return f"{IGDB_IMAGE_BASE_URL}/t_screenshot_med/{image_id}.jpg"


def map_game_to_search_result(game: dict[str, Any]) -> dict[str, Any]:
    """
    Normalize a raw IGDB game into the shared external-media result shape.
    """

    companies = [c for c in (game.get("involved_companies") or []) if isinstance(c, dict)]
    developer = next(
        ((c.get("company") or {}).get("name") for c in companies if c.get("developer")),
        None,
    )
    publisher = next(
        ((c.get("company") or {}).get("name") for c in companies if c.get("publisher")),
        None,
    )
    official_site = next(
        (
            w.get("url")
            for w in (game.get("websites") or [])
            if isinstance(w, dict) and w.get("category") == OFFICIAL_WEBSITE_CATEGORY
        ),
        None,
    )

    cover = game.get("cover") or {}
    release = game.get("first_release_date")
    rating = game.get("rating")

    return {
        "id": str(game.get("id")),
        "title": game.get("name"),
        "description": game.get("summary"),
        "image": cover_url(cover["image_id"]) if isinstance(cover, dict) and cover.get("image_id") else None,
        "year": datetime.fromtimestamp(release, tz=timezone.utc).year if isinstance(release, (int, float)) else None,
        "genres": [g.get("name") for g in (game.get("genres") or []) if isinstance(g, dict) and g.get("name")],
        "platforms": [
            p.get("abbreviation") or p.get("name")
            for p in (game.get("platforms") or [])
            if isinstance(p, dict) and (p.get("abbreviation") or p.get("name"))
        ],
        # IGDB rates 0-100; the library uses 0-5.
        "rating": round(rating / 20) if isinstance(rating, (int, float)) and rating else None,
        "developer": developer,
        "publisher": publisher,
        "screenshots": [
            screenshot_url(s["image_id"])
            for s in (game.get("screenshots") or [])
            if isinstance(s, dict) and s.get("image_id")
        ],
        "official_website": official_site,
        "source": "igdb",
        "original_type": "game",
    }


def _mask(value: str) -> str:
    return f"{value[:8]}***" if value else "MISSING"


class IgdbClient:
    """
    IGDB v4 client with process-wide throttling and token refresh.
    """

    def __init__(
        self,
        client_id: str | None,
        token_cache: TokenCache,
        *,
        rate_limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self.client_id = (client_id or "").strip() or None
        self.token_cache = token_cache
        self.rate_limiter = rate_limiter or RateLimiter()
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.client_id)

    def _post(self, endpoint: str, body: str, token: str) -> requests.Response:
        self.rate_limiter.throttle()
        try:
            return self._session.post(
                f"{IGDB_API_BASE_URL}/{endpoint}",
                data=body.encode("utf-8"),
                headers={
                    "Client-ID": self.client_id or "",
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "text/plain",
                    "User-Agent": USER_AGENT,
                },
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise IgdbClientError(f"IGDB request failed: {exc}") from exc

    def query(self, endpoint: str, body: str) -> list[dict[str, Any]]:
        """
        POST an Apicalypse body; a 401 drops the cached token and retries once.
        """

        if not self.client_id:
            raise IgdbNotConfiguredError("IGDB_CLIENT_ID is not set.")

        logger.info(f"IGDB request to /{endpoint} (client {_mask(self.client_id)})")
        resp = self._post(endpoint, body, self.token_cache.validate_and_refresh_token())
        if resp.status_code == 401:
            logger.error("IGDB authentication failed - invalid token; refreshing")
            self.token_cache.invalidate()
            resp = self._post(endpoint, body, self.token_cache.validate_and_refresh_token())

        logger.info(f"IGDB response: {resp.status_code}")
        if resp.status_code != 200:
            if resp.status_code == 401:
                self.token_cache.invalidate()
                message = "Invalid or expired access token"
            elif resp.status_code == 403:
                message = "Invalid Client-ID or insufficient permissions"
            elif resp.status_code == 429:
                message = "Rate limit exceeded (max 4 req/sec)"
            else:
                message = "Unexpected IGDB error"
            raise IgdbClientError(
                f"IGDB API error: {resp.status_code} - {message}",
                status_code=resp.status_code,
                body_snippet=(resp.text or "")[:400],
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise IgdbClientError("IGDB returned non-JSON response.", status_code=resp.status_code) from exc
        if not isinstance(payload, list):
            raise IgdbClientError("IGDB returned unexpected JSON shape (not a list).")
        return [item for item in payload if isinstance(item, dict)]

    def query_games(self, body: str) -> list[dict[str, Any]]:
        return self.query("games", body)

    def search_games(
        self,
        query: str,
        *,
        limit: int = 20,
        offset: int = 0,
        filters: IgdbSearchFilters | None = None,
    ) -> list[dict[str, Any]]:
        games = self.query_games(build_search_query(query, limit=limit, offset=offset, filters=filters))
        return [map_game_to_search_result(g) for g in games]

    def get_game_details(self, game_id: int) -> dict[str, Any] | None:
        games = self.query_games(f"{DETAIL_FIELDS}\nwhere id = {int(game_id)};")
        return games[0] if games else None

    def get_popular_games(self, limit: int = 20) -> list[dict[str, Any]]:
        body = f"{LIST_FIELDS}\nwhere rating_count > 100 & rating > 75;\nsort rating desc;\nlimit {int(limit)};"
        return [map_game_to_search_result(g) for g in self.query_games(body)]

    def get_games_by_genre(self, genre_name: str, limit: int = 20) -> list[dict[str, Any]]:
        body = (
            f"{LIST_FIELDS}\nwhere genres.name ~ {_quote(genre_name)} & rating_count > 10;\n"
            f"sort rating desc;\nlimit {int(limit)};"
        )
        return [map_game_to_search_result(g) for g in self.query_games(body)]

    def check_status(self) -> dict[str, Any]:
        """
        Probe IGDB with a one-row query; never raises.
        """

        if not self.client_id:
            return {
                "status": "not_configured",
                "message": "IGDB_CLIENT_ID not configured",
                "details": "Configure environment variables",
            }
        try:
            self.token_cache.validate_and_refresh_token()
        except TokenRefreshError as exc:
            return {
                "status": "token_error",
                "message": "Failed to obtain valid access token",
                "details": str(exc),
            }
        try:
            self.query_games("fields id; limit 1;")
        except IgdbClientError as exc:
            return {"status": "error", "message": str(exc), "details": exc.body_snippet}
        return {
            "status": "ok",
            "message": "IGDB API available",
            "token_cached": bool(self.token_cache.token),
            "token_expires_at": self.token_cache.expires_at_iso(),
        }


def create_igdb_client_from_env(*, session: requests.Session | None = None) -> IgdbClient:
    client_id = (os.getenv("IGDB_CLIENT_ID") or "").strip() or None
    token_cache = TokenCache(
        client_id,
        (os.getenv("TWITCH_CLIENT_SECRET") or "").strip() or None,
        token=(os.getenv("IGDB_ACCESS_TOKEN") or "").strip() or None,
        session=session,
    )
    return IgdbClient(client_id, token_cache, session=session)
