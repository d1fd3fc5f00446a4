"""
Mercado Pago premium endpoints.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from supabase import Client

from api.deps import SupabaseAdminClient, raise_for_payment_error
from geeklogg_backend.payments import mercadopago_billing
from geeklogg_backend.payments.errors import PaymentError
from geeklogg_backend.utils.env import resolve_env

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mercadopago"])


# --- Pydantic models ---


class PreferenceRequest(BaseModel):
    uid: str | None = None
    email: str | None = None


class PreferenceResponse(BaseModel):
    success: bool
    init_point: str | None
    preference_id: str


class UpdatePremiumRequest(BaseModel):
    uid: str | None = None
    preference_id: str | None = None


class CancelPremiumRequest(BaseModel):
    uid: str | None = None


class ActionResponse(BaseModel):
    success: bool
    message: str


# --- Background processing ---


def process_notification_sync(db: Client, notification: dict[str, Any]) -> None:
    try:
        mercadopago_billing.process_notification(db, notification)
    except Exception as e:
        logger.error(f"Failed to process Mercado Pago webhook: {e}")


# --- Endpoints ---


@router.post("/create-preference", response_model=PreferenceResponse)
def create_preference(db: SupabaseAdminClient, payload: PreferenceRequest) -> dict:
    """Create a Checkout Pro preference for the monthly premium plan."""
    try:
        return mercadopago_billing.create_preference(db, uid=payload.uid, email=payload.email)
    except PaymentError as exc:
        raise_for_payment_error(exc, "creating payment preference")


@router.post("/update-premium", response_model=ActionResponse)
def update_premium(db: SupabaseAdminClient, payload: UpdatePremiumRequest) -> dict:
    """Upgrade the user once their preference has been approved."""
    try:
        return mercadopago_billing.update_user_premium(db, uid=payload.uid, preference_id=payload.preference_id)
    except PaymentError as exc:
        raise_for_payment_error(exc, "upgrading user to premium")


@router.post("/cancel-premium", response_model=ActionResponse)
def cancel_premium(db: SupabaseAdminClient, payload: CancelPremiumRequest) -> dict:
    """Cancel the user's premium access."""
    try:
        return mercadopago_billing.cancel_premium(db, uid=payload.uid)
    except PaymentError as exc:
        raise_for_payment_error(exc, "cancelling premium")


@router.post("/mercadopago-webhook", response_class=PlainTextResponse)
async def mercadopago_webhook(
    request: Request,
    db: SupabaseAdminClient,
    background_tasks: BackgroundTasks,
) -> str:
    """
    Acknowledge a notification immediately and process it in the background.

    When MERCADOPAGO_WEBHOOK_SECRET is set, unsigned or mis-signed calls get a 400.
    """
    try:
        body = await request.json()
    except ValueError:
        body = {}
    notification: dict[str, Any] = body if isinstance(body, dict) else {}
    logger.info(f"Mercado Pago webhook received: type={notification.get('type')} query={dict(request.query_params)}")

    data_id = request.query_params.get("data.id") or str((notification.get("data") or {}).get("id") or "")
    secret = resolve_env("MERCADOPAGO_WEBHOOK_SECRET")
    if secret:
        try:
            mercadopago_billing.verify_signature(
                signature_header=request.headers.get("x-signature"),
                request_id=request.headers.get("x-request-id"),
                data_id=data_id or None,
                secret=secret,
            )
        except PaymentError as exc:
            logger.error(f"Mercado Pago webhook verification failed: {exc.message}")
            raise_for_payment_error(exc, "verifying Mercado Pago webhook")
    else:
        logger.warning("MERCADOPAGO_WEBHOOK_SECRET not set; skipping signature check")

    background_tasks.add_task(process_notification_sync, db, notification)
    return "OK"
