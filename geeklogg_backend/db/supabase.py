"""
Supabase access for the `core` schema.

The Firestore collections of the mobile app map to three tables:
`users/{uid}` -> `core.users`, `users/{uid}/medias` -> `core.medias` (keyed by
`user_id`) and `payment_preferences` -> `core.payment_preferences`.
"""
from __future__ import annotations

import os
from functools import lru_cache

from supabase import Client, create_client

CORE_SCHEMA = "core"

USERS_TABLE = "users"
MEDIAS_TABLE = "medias"
PAYMENT_PREFERENCES_TABLE = "payment_preferences"


def _require(name: str) -> str:
    value = (os.getenv(name) or "").strip()
    if not value:
        raise RuntimeError(f"{name} environment variable is not set")
    return value


@lru_cache
def get_supabase_url() -> str:
    return _require("SUPABASE_URL")


@lru_cache
def get_supabase_anon_key() -> str:
    return _require("SUPABASE_ANON_KEY")


@lru_cache
def get_supabase_service_key() -> str:
    return _require("SUPABASE_SERVICE_ROLE_KEY")


def create_supabase_admin_client() -> Client:
    """
    Service-role client (bypasses RLS). Only the payment flows use it: subscription
    columns of `core.users` are not writable by end users.
    """

    return create_client(get_supabase_url(), get_supabase_service_key())


def create_supabase_anon_client() -> Client:
    return create_client(get_supabase_url(), get_supabase_anon_key())


def create_supabase_user_client(access_token: str) -> Client:
    """
    Anon-key client acting as the signed-in user, so RLS limits it to their rows.
    """

    client = create_supabase_anon_client()
    client.postgrest.auth(access_token)
    return client


def core_table(db: Client, table: str):
    return db.schema(CORE_SCHEMA).table(table)
