from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from supabase import Client

from geeklogg_backend.db.supabase import USERS_TABLE, core_table
from geeklogg_backend.models.subscription import SubscriptionRecord


class UserRepositoryError(RuntimeError):
    pass


class UserNotFoundError(UserRepositoryError):
    pass


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _raise_for_supabase_error(response: Any, context: str) -> None:
    if hasattr(response, "error") and response.error:
        raise UserRepositoryError(f"Supabase error during {context}: {response.error}")


def _first_row(response: Any) -> dict[str, Any] | None:
    data = response.data or []
    if isinstance(data, list) and data:
        return data[0]
    if isinstance(data, dict):
        return data
    return None


def get_user(db: Client, user_id: str) -> SubscriptionRecord | None:
    response = core_table(db, USERS_TABLE).select("*").eq("id", user_id).limit(1).execute()
    _raise_for_supabase_error(response, "fetching user")
    row = _first_row(response)
    return SubscriptionRecord.from_row(row) if row else None


def find_user_by_stripe_customer(db: Client, customer_id: str) -> SubscriptionRecord | None:
    response = (
        core_table(db, USERS_TABLE)
        .select("*")
        .eq("stripe_customer_id", customer_id)
        .limit(1)
        .execute()
    )
    _raise_for_supabase_error(response, "finding user by stripe customer")
    row = _first_row(response)
    return SubscriptionRecord.from_row(row) if row else None


def merge_user(db: Client, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
    """
    Create-or-merge the user row; columns not in `fields` are left untouched.

    Concurrent merges for the same user are last-write-wins.
    """

    payload: dict[str, Any] = {**dict(fields), "id": user_id, "updated_at": _now_utc_iso()}
    response = core_table(db, USERS_TABLE).upsert(payload, on_conflict="id").execute()
    _raise_for_supabase_error(response, "merging user")
    row = _first_row(response)
    if row is None:
        raise UserRepositoryError("Supabase upsert returned no data for user.")
    return row


def update_user(db: Client, user_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
    """
    Update an existing user row; fails when the user does not exist.
    """

    payload: dict[str, Any] = {**dict(fields), "updated_at": _now_utc_iso()}
    response = core_table(db, USERS_TABLE).update(payload).eq("id", user_id).execute()
    _raise_for_supabase_error(response, "updating user")
    row = _first_row(response)
    if row is None:
        raise UserNotFoundError(f"User {user_id} not found.")
    return row
