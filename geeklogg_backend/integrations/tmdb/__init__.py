"""
TMDb integration clients.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geeklogg_backend.integrations.tmdb.client import (
        TmdbClientError,
        fetch_movie_details,
        fetch_tv_details,
        search_movies,
        search_tv_shows,
    )

__all__ = [
    "TmdbClientError",
    "fetch_movie_details",
    "fetch_tv_details",
    "search_movies",
    "search_tv_shows",
]


def __getattr__(name: str):
    if name in __all__:
        from geeklogg_backend.integrations.tmdb import client

        return getattr(client, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
