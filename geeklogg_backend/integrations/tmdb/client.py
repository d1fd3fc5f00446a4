from __future__ import annotations

import logging
import os
import re
from typing import Any, Mapping

import requests

from geeklogg_backend.integrations.http import ExternalApiError, request_json

logger = logging.getLogger(__name__)

TMDB_API_BASE_URL = "https://api.themoviedb.org/3"
TMDB_POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
DEFAULT_LANGUAGE = "pt-BR"

# TMDb genre id 16 is "Animation" for both movies and TV.
ANIMATION_GENRE_ID = 16

MOVIE_GENRES: dict[int, str] = {
    28: "Ação",
    12: "Aventura",
    16: "Animação",
    35: "Comédia",
    80: "Crime",
    99: "Documentário",
    18: "Drama",
    10751: "Família",
    14: "Fantasia",
    36: "História",
    27: "Terror",
    10402: "Música",
    9648: "Mistério",
    10749: "Romance",
    878: "Ficção Científica",
    10770: "Cinema TV",
    53: "Thriller",
    10752: "Guerra",
    37: "Faroeste",
}

TV_GENRES: dict[int, str] = {
    10759: "Ação e Aventura",
    16: "Animação",
    35: "Comédia",
    80: "Crime",
    99: "Documentário",
    18: "Drama",
    10751: "Família",
    10762: "Infantil",
    9648: "Mistério",
    10763: "Notícias",
    10764: "Reality",
    10765: "Ficção Científica e Fantasia",
    10766: "Novela",
    10767: "Talk Show",
    10768: "Guerra e Política",
    37: "Faroeste",
}

DEFINITE_ANIMES = (
    "one piece",
    "dragon ball",
    "naruto",
    "attack on titan",
    "demon slayer",
    "my hero academia",
    "jujutsu kaisen",
    "fullmetal alchemist",
    "death note",
    "bleach",
    "hunter x hunter",
    "pokemon",
    "sailor moon",
    "evangelion",
)

ANIME_KEYWORDS = ("anime", "manga")

DORAMA_KEYWORDS = (
    "dorama",
    "k-drama",
    "korean drama",
    "j-drama",
    "japanese drama",
    "thai drama",
    "chinese drama",
    "drama coreano",
    "drama japonês",
    "drama tailandês",
    "drama chinês",
    "bl",
    "boys love",
    "yaoi live action",
)
# Whole words only: "bl" must not match "Bleach" or "possible".
_DORAMA_PATTERN = re.compile(r"(?<!\w)(?:" + "|".join(re.escape(k) for k in DORAMA_KEYWORDS) + r")(?!\w)")


class TmdbClientError(ExternalApiError):
    pass


def _require_api_key(api_key: str | None) -> str:
    resolved = (api_key or os.getenv("TMDB_API_KEY") or "").strip()
    if not resolved:
        raise RuntimeError("TMDB_API_KEY is not set.")
    return resolved


def resolve_api_key(api_key: str | None = None) -> str | None:
    """
    Best-effort API key resolution for callers that want to continue when the key is missing.
    """

    resolved = (api_key or os.getenv("TMDB_API_KEY") or "").strip()
    return resolved or None


def _get(session: requests.Session | None, path: str, params: Mapping[str, Any]) -> dict[str, Any]:
    return request_json(
        session or requests.Session(),
        f"{TMDB_API_BASE_URL}{path}",
        params=params,
        label="TMDb",
        error_cls=TmdbClientError,
    )


def map_genres(genre_ids: list[int] | None, media_type: str) -> list[str]:
    genre_map = MOVIE_GENRES if media_type == "movie" else TV_GENRES
    return [genre_map[g] for g in (genre_ids or []) if g in genre_map]


def _year(value: Any) -> int | None:
    if not isinstance(value, str) or not value:
        return None
    head = value.split("-")[0]
    return int(head) if head.isdigit() else None


def _poster(path: Any) -> str | None:
    return f"{TMDB_POSTER_BASE_URL}{path}" if isinstance(path, str) and path else None


def detect_if_anime(item: Mapping[str, Any]) -> bool:
    """
    Known titles always count; otherwise require Japanese origin, the animation
    genre and an explicit anime/manga keyword.
    """

    title = str(item.get("name") or item.get("title") or "").lower()
    overview = str(item.get("overview") or "").lower()

    if any(anime in title for anime in DEFINITE_ANIMES):
        return True

    countries = item.get("origin_country") or []
    is_japanese = item.get("original_language") == "ja" or "JP" in countries
    has_animation_genre = ANIMATION_GENRE_ID in (item.get("genre_ids") or [])
    has_keywords = any(k in title or k in overview for k in ANIME_KEYWORDS)
    return is_japanese and has_animation_genre and has_keywords


def detect_if_dorama(result: Mapping[str, Any]) -> bool:
    title = str(result.get("title") or "").lower()
    description = str(result.get("description") or "").lower()
    return bool(_DORAMA_PATTERN.search(title) or _DORAMA_PATTERN.search(description))


def search_movies(
    query: str,
    *,
    limit: int = 10,
    api_key: str | None = None,
    session: requests.Session | None = None,
    language: str = DEFAULT_LANGUAGE,
) -> list[dict[str, Any]]:
    api_key = _require_api_key(api_key)
    payload = _get(session, "/search/movie", {"api_key": api_key, "query": query, "language": language})
    results = [r for r in (payload.get("results") or []) if isinstance(r, dict)]

    return [
        {
            "id": str(item.get("id")),
            "title": item.get("title") or "Título não informado",
            "description": item.get("overview") or None,
            "image": _poster(item.get("poster_path")),
            "year": _year(item.get("release_date")),
            "genres": map_genres(item.get("genre_ids"), "movie"),
            "tmdb_id": item.get("id"),
            "source": "tmdb",
            "original_type": "movie",
        }
        for item in results[:limit]
    ]


def search_tv_shows(
    query: str,
    *,
    limit: int = 10,
    api_key: str | None = None,
    session: requests.Session | None = None,
    language: str = DEFAULT_LANGUAGE,
) -> list[dict[str, Any]]:
    """
    Search TV series; each result is tagged `anime` or `tv` in `original_type`.
    """

    api_key = _require_api_key(api_key)
    payload = _get(session, "/search/tv", {"api_key": api_key, "query": query, "language": language})
    results = [r for r in (payload.get("results") or []) if isinstance(r, dict)]

    return [
        {
            "id": str(item.get("id")),
            "title": item.get("name") or "Título não informado",
            "description": item.get("overview") or None,
            "image": _poster(item.get("poster_path")),
            "year": _year(item.get("first_air_date")),
            "genres": map_genres(item.get("genre_ids"), "tv"),
            "tmdb_id": item.get("id"),
            "source": "tmdb",
            "original_type": "anime" if detect_if_anime(item) else "tv",
        }
        for item in results[:limit]
    ]


def fetch_movie_details(
    tmdb_id: int,
    *,
    api_key: str | None = None,
    session: requests.Session | None = None,
    language: str = DEFAULT_LANGUAGE,
) -> dict[str, Any]:
    api_key = _require_api_key(api_key)
    data = _get(
        session,
        f"/movie/{int(tmdb_id)}",
        {"api_key": api_key, "language": language, "append_to_response": "credits"},
    )
    credits = data.get("credits") or {}
    director = next(
        (p.get("name") for p in (credits.get("crew") or []) if isinstance(p, dict) and p.get("job") == "Director"),
        None,
    )
    return {
        "runtime": data.get("runtime") or None,
        "director": director,
        "actors": [a.get("name") for a in (credits.get("cast") or [])[:5] if isinstance(a, dict)],
        "imdb_id": data.get("imdb_id") or None,
    }


def fetch_tv_details(
    tmdb_id: int,
    *,
    api_key: str | None = None,
    session: requests.Session | None = None,
    language: str = DEFAULT_LANGUAGE,
) -> dict[str, Any]:
    api_key = _require_api_key(api_key)
    data = _get(
        session,
        f"/tv/{int(tmdb_id)}",
        {"api_key": api_key, "language": language, "append_to_response": "credits"},
    )
    creators = [c for c in (data.get("created_by") or []) if isinstance(c, dict)]
    credits = data.get("credits") or {}
    return {
        "director": creators[0].get("name") if creators else None,
        "actors": [a.get("name") for a in (credits.get("cast") or [])[:5] if isinstance(a, dict)],
    }


def check_available(*, api_key: str | None = None, session: requests.Session | None = None) -> bool:
    resolved = resolve_api_key(api_key)
    if not resolved:
        return False
    try:
        _get(session, "/configuration", {"api_key": resolved})
    except TmdbClientError as exc:
        logger.warning(f"TMDb API not available: {exc}")
        return False
    return True
