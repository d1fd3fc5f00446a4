from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from supabase import Client

from geeklogg_backend.db.supabase import PAYMENT_PREFERENCES_TABLE, core_table
from geeklogg_backend.models.subscription import PREFERENCE_PENDING


class PaymentPreferenceRepositoryError(RuntimeError):
    pass


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _raise_for_supabase_error(response: Any, context: str) -> None:
    if hasattr(response, "error") and response.error:
        raise PaymentPreferenceRepositoryError(f"Supabase error during {context}: {response.error}")


def _first_row(response: Any) -> dict[str, Any] | None:
    data = response.data or []
    if isinstance(data, list) and data:
        return data[0]
    return None


def insert_preference(db: Client, *, preference_id: str, user_id: str, email: str) -> dict[str, Any]:
    payload = {
        "id": preference_id,
        "user_id": user_id,
        "email": email,
        "status": PREFERENCE_PENDING,
        "created_at": _now_utc_iso(),
    }
    response = core_table(db, PAYMENT_PREFERENCES_TABLE).insert(payload).execute()
    _raise_for_supabase_error(response, "inserting payment preference")
    return _first_row(response) or payload


def get_preference(db: Client, preference_id: str) -> dict[str, Any] | None:
    response = (
        core_table(db, PAYMENT_PREFERENCES_TABLE)
        .select("*")
        .eq("id", preference_id)
        .limit(1)
        .execute()
    )
    _raise_for_supabase_error(response, "fetching payment preference")
    return _first_row(response)


def update_preference(db: Client, preference_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {**dict(fields), "updated_at": _now_utc_iso()}
    response = core_table(db, PAYMENT_PREFERENCES_TABLE).update(payload).eq("id", preference_id).execute()
    _raise_for_supabase_error(response, "updating payment preference")
    row = _first_row(response)
    if row is None:
        raise PaymentPreferenceRepositoryError(f"Payment preference {preference_id} not found.")
    return row
