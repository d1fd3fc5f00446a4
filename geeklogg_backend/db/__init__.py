"""
Supabase clients and table names for the GeekLogg store.
"""

from geeklogg_backend.db.supabase import (
    CORE_SCHEMA,
    MEDIAS_TABLE,
    PAYMENT_PREFERENCES_TABLE,
    USERS_TABLE,
    core_table,
    create_supabase_admin_client,
    create_supabase_anon_client,
    create_supabase_user_client,
)

__all__ = [
    "CORE_SCHEMA",
    "MEDIAS_TABLE",
    "PAYMENT_PREFERENCES_TABLE",
    "USERS_TABLE",
    "core_table",
    "create_supabase_admin_client",
    "create_supabase_anon_client",
    "create_supabase_user_client",
]
