"""
IGDB integration clients (games metadata via Twitch OAuth).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geeklogg_backend.integrations.igdb.client import (
        IgdbClient,
        IgdbClientError,
        IgdbNotConfiguredError,
        IgdbSearchFilters,
        create_igdb_client_from_env,
    )
    from geeklogg_backend.integrations.igdb.rate_limiter import RateLimiter
    from geeklogg_backend.integrations.igdb.token_cache import TokenCache, TokenRefreshError

__all__ = [
    "IgdbClient",
    "IgdbClientError",
    "IgdbNotConfiguredError",
    "IgdbSearchFilters",
    "RateLimiter",
    "TokenCache",
    "TokenRefreshError",
    "create_igdb_client_from_env",
]

_MODULES = {
    "RateLimiter": "rate_limiter",
    "TokenCache": "token_cache",
    "TokenRefreshError": "token_cache",
}


def __getattr__(name: str):
    if name in __all__:
        from importlib import import_module

        module = import_module(f"geeklogg_backend.integrations.igdb.{_MODULES.get(name, 'client')}")
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
