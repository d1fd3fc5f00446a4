"""
Mercado Pago premium checkout (Checkout Pro preferences) and payment webhook.

Webhook notifications are acknowledged before they are processed; the payment
is re-read from the Mercado Pago API so the notification body is never trusted.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Mapping

import mercadopago
from supabase import Client

from geeklogg_backend.models.subscription import (
    PREFERENCE_APPROVED,
    PREFERENCE_CANCELLED,
    PREFERENCE_REJECTED,
)
from geeklogg_backend.payments.errors import PaymentError, WebhookVerificationError
from geeklogg_backend.repositories.payment_preferences import (
    PaymentPreferenceRepositoryError,
    get_preference,
    insert_preference,
    update_preference,
)
from geeklogg_backend.repositories.users import UserNotFoundError, UserRepositoryError, update_user
from geeklogg_backend.utils.env import get_client_url, resolve_env

logger = logging.getLogger(__name__)

DEFAULT_CLOUD_FUNCTION_URL = "https://us-central1-geeklog-26b2c.cloudfunctions.net/api"

PREMIUM_ITEM = {
    "id": "geeklogg-premium-monthly",
    "title": "GeekLogg Premium - Assinatura Mensal",
    "description": "Acesso completo aos recursos Premium do GeekLogg",
    "category_id": "digital_content",
    "quantity": 1,
    "unit_price": 9.90,
    "currency_id": "BRL",
}
PREMIUM_PLAN = "monthly"


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@lru_cache
def get_sdk(access_token: str) -> mercadopago.SDK:
    return mercadopago.SDK(access_token)


def get_mercadopago_sdk() -> mercadopago.SDK:
    token = resolve_env("MERCADOPAGO_ACCESS_TOKEN")
    if not token:
        raise PaymentError("MERCADOPAGO_ACCESS_TOKEN is not configured", status_code=500)
    return get_sdk(token)


def _unwrap(result: Mapping[str, Any], context: str) -> dict[str, Any]:
    """
    SDK calls return `{"status": <http status>, "response": <body>}`.
    """

    status = result.get("status")
    response = result.get("response")
    if not isinstance(status, int) or status >= 400 or not isinstance(response, dict):
        raise PaymentError(f"Mercado Pago error during {context}: {status} {response}", status_code=502)
    return response


def build_preference(uid: str, email: str) -> dict[str, Any]:
    frontend_url = get_client_url()
    notification_base = (resolve_env("CLOUD_FUNCTION_URL") or DEFAULT_CLOUD_FUNCTION_URL).rstrip("/")
    return {
        "items": [dict(PREMIUM_ITEM)],
        "payer": {"email": email},
        "back_urls": {
            "success": f"{frontend_url}/premium-success",
            "failure": f"{frontend_url}/premium-cancel",
            "pending": f"{frontend_url}/premium-pending",
        },
        "auto_return": "approved",
        "external_reference": uid,
        "notification_url": f"{notification_base}/mercadopago-webhook",
        "statement_descriptor": "GEEKLOGG PREMIUM",
        "metadata": {"user_id": uid, "plan": "premium-monthly"},
    }


def create_preference(
    db: Client,
    *,
    uid: str | None,
    email: str | None,
    sdk: mercadopago.SDK | None = None,
) -> dict[str, Any]:
    if not uid or not email:
        raise PaymentError("uid and email are required", status_code=400)

    logger.info(f"Creating preference for user {uid}")
    sdk = sdk or get_mercadopago_sdk()
    preference = _unwrap(sdk.preference().create(build_preference(uid, email)), "creating preference")
    preference_id = str(preference.get("id"))
    logger.info(f"Preference created: {preference_id}")

    try:
        insert_preference(db, preference_id=preference_id, user_id=uid, email=email)
    except PaymentPreferenceRepositoryError as exc:
        raise PaymentError(f"Failed to save preference {preference_id}: {exc}", status_code=502) from exc
    return {
        "success": True,
        "init_point": preference.get("init_point"),
        "preference_id": preference_id,
    }


def _premium_fields(*, payment_id: Any = None) -> dict[str, Any]:
    now = _now_utc_iso()
    fields: dict[str, Any] = {
        "is_premium": True,
        "premium_since": now,
        "premium_plan": PREMIUM_PLAN,
        "last_payment_date": now,
    }
    if payment_id is not None:
        fields["last_payment_id"] = str(payment_id)
    return fields


def _update_subscriber(db: Client, uid: str, fields: dict[str, Any]) -> None:
    try:
        update_user(db, uid, fields)
    except UserNotFoundError as exc:
        raise PaymentError(f"User {uid} not found", status_code=404) from exc
    except UserRepositoryError as exc:
        raise PaymentError(f"Failed to update user {uid}: {exc}", status_code=502) from exc


def update_user_premium(db: Client, *, uid: str | None, preference_id: str | None) -> dict[str, Any]:
    if not uid or not preference_id:
        raise PaymentError("uid and preference_id are required", status_code=400)

    try:
        preference = get_preference(db, preference_id)
    except PaymentPreferenceRepositoryError as exc:
        raise PaymentError(f"Failed to load preference {preference_id}: {exc}", status_code=502) from exc
    if preference is None:
        raise PaymentError("Payment preference not found", status_code=404)
    if preference.get("status") != PREFERENCE_APPROVED:
        raise PaymentError(
            f"Payment not approved yet (status: {preference.get('status')})",
            status_code=400,
        )

    _update_subscriber(db, uid, _premium_fields())
    logger.info(f"User {uid} upgraded to premium")
    return {"success": True, "message": "User upgraded to premium"}


def cancel_premium(db: Client, *, uid: str | None) -> dict[str, Any]:
    if not uid:
        raise PaymentError("uid is required", status_code=400)

    logger.info(f"Cancelling premium for user {uid}")
    _update_subscriber(db, uid, {"is_premium": False, "premium_cancelled_at": _now_utc_iso()})
    return {"success": True, "message": "Premium subscription cancelled"}


def parse_signature_header(header: str) -> tuple[str | None, str | None]:
    ts = v1 = None
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "ts":
            ts = value.strip()
        elif key == "v1":
            v1 = value.strip()
    return ts, v1


def verify_signature(
    *,
    signature_header: str | None,
    request_id: str | None,
    data_id: str | None,
    secret: str,
) -> None:
    """
    Check `x-signature` against HMAC-SHA256 of `id:<data.id>;request-id:<x-request-id>;ts:<ts>;`.
    """

    if not signature_header:
        raise WebhookVerificationError("Missing x-signature header")
    ts, v1 = parse_signature_header(signature_header)
    if not ts or not v1:
        raise WebhookVerificationError("Malformed x-signature header")

    manifest = ""
    if data_id:
        # Alphanumeric ids are signed in lowercase.
        manifest += f"id:{data_id.lower() if data_id.isalnum() else data_id};"
    if request_id:
        manifest += f"request-id:{request_id};"
    manifest += f"ts:{ts};"

    expected = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, v1):
        raise WebhookVerificationError("Invalid Mercado Pago signature")


def process_notification(db: Client, notification: Mapping[str, Any], *, sdk: mercadopago.SDK | None = None) -> None:
    """
    Apply a webhook notification. Runs after the 200 was sent, so errors are only logged by the caller.
    """

    if notification.get("type") != "payment":
        logger.info(f"Ignoring Mercado Pago notification type: {notification.get('type')}")
        return

    payment_id = (notification.get("data") or {}).get("id")
    if not payment_id:
        logger.warning("Payment notification without data.id")
        return

    logger.info(f"Processing payment: {payment_id}")
    sdk = sdk or get_mercadopago_sdk()
    payment = _unwrap(sdk.payment().get(payment_id), "fetching payment")
    status = payment.get("status")
    metadata = payment.get("metadata") or {}
    preference_id = metadata.get("preference_id") if isinstance(metadata, Mapping) else None
    logger.info(f"Payment {payment.get('id')} status={status} external_reference={payment.get('external_reference')}")

    if status == PREFERENCE_APPROVED:
        user_id = payment.get("external_reference")
        if not user_id:
            logger.error(f"Approved payment {payment_id} has no external_reference")
            return
        if preference_id:
            update_preference(
                db,
                str(preference_id),
                {"status": PREFERENCE_APPROVED, "payment_id": str(payment.get("id")), "approved_at": _now_utc_iso()},
            )
        update_user(db, str(user_id), _premium_fields(payment_id=payment.get("id")))
        logger.info(f"User {user_id} promoted to premium")
    elif status in (PREFERENCE_REJECTED, PREFERENCE_CANCELLED):
        logger.info(f"Payment {status}: {payment_id}")
        if preference_id:
            update_preference(db, str(preference_id), {"status": status, "payment_id": str(payment.get("id"))})
