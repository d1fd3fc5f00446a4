"""
Dependency injection for Supabase clients, external API clients and other shared resources.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException
from supabase import Client

from geeklogg_backend.db import create_supabase_admin_client
from geeklogg_backend.integrations.external_media import ExternalMediaService
from geeklogg_backend.integrations.igdb.client import IgdbClient, create_igdb_client_from_env
from geeklogg_backend.payments.errors import PaymentError
from geeklogg_backend.utils.env import load_env

load_env()

logger = logging.getLogger(__name__)


def get_supabase_admin_client() -> Client:
    """
    Returns a Supabase client using the service role key (bypasses RLS).
    Payment routes use it because subscription fields are not user-writable.
    """
    return create_supabase_admin_client()


@lru_cache
def get_igdb_client() -> IgdbClient:
    """
    Process-wide IGDB client so every request shares one rate limiter and token cache.
    """
    return create_igdb_client_from_env()


def get_external_media_service() -> ExternalMediaService:
    return ExternalMediaService(get_igdb_client())


# Type aliases for dependency injection
SupabaseAdminClient = Annotated[Client, Depends(get_supabase_admin_client)]
IgdbClientDep = Annotated[IgdbClient, Depends(get_igdb_client)]
ExternalMediaDep = Annotated[ExternalMediaService, Depends(get_external_media_service)]


def raise_for_payment_error(exc: PaymentError, context: str) -> None:
    """
    Translate a payment flow failure into an HTTP error, logging server-side failures.
    """
    if exc.status_code >= 500:
        logger.error(f"Error during {context}: {exc.message}")
    raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
