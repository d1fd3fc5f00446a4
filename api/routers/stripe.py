"""
Stripe subscription endpoints.

The webhook answers as soon as the signature is verified; the event is applied
to `core.users` afterwards in a background task. A failed write is logged and
not retried (Stripe already got its 200).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Request
from pydantic import BaseModel, Field
from supabase import Client

from api.deps import SupabaseAdminClient, raise_for_payment_error
from geeklogg_backend.payments import stripe_billing
from geeklogg_backend.payments.errors import PaymentError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stripe"])


# --- Pydantic models ---


class CheckoutRequest(BaseModel):
    user_id: str | None = Field(default=None, alias="userId")
    email: str | None = None
    price_id: str | None = Field(default=None, alias="priceId")


class CheckoutResponse(BaseModel):
    sessionId: str
    url: str | None


class PortalRequest(BaseModel):
    user_id: str | None = Field(default=None, alias="userId")


class PortalResponse(BaseModel):
    url: str


# --- Background processing ---


def process_event_sync(db: Client, event: dict[str, Any]) -> None:
    try:
        stripe_billing.handle_event(db, event)
    except Exception as e:
        logger.error(f"Failed to process Stripe event {event.get('id')} ({event.get('type')}): {e}")


# --- Endpoints ---


@router.post("/stripe-create-checkout", response_model=CheckoutResponse)
def create_checkout(db: SupabaseAdminClient, payload: CheckoutRequest) -> dict:
    """Create a subscription checkout session for the user."""
    try:
        return stripe_billing.create_checkout_session(
            db,
            user_id=payload.user_id,
            email=payload.email,
            price_id=payload.price_id,
        )
    except PaymentError as exc:
        raise_for_payment_error(exc, "creating checkout session")


@router.post("/stripe-customer-portal", response_model=PortalResponse)
def create_customer_portal(db: SupabaseAdminClient, payload: PortalRequest) -> dict:
    """Create a billing-portal session for managing the subscription."""
    try:
        return stripe_billing.create_customer_portal(db, user_id=payload.user_id)
    except PaymentError as exc:
        raise_for_payment_error(exc, "creating customer portal")


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    db: SupabaseAdminClient,
    background_tasks: BackgroundTasks,
) -> dict:
    """Receive a Stripe event; the raw body is needed for signature verification."""
    payload = await request.body()
    try:
        event = stripe_billing.construct_event(payload, request.headers.get("stripe-signature"))
    except PaymentError as exc:
        logger.error(f"Stripe webhook verification failed: {exc.message}")
        raise_for_payment_error(exc, "verifying Stripe webhook")

    background_tasks.add_task(process_event_sync, db, event)
    return {"received": True}
