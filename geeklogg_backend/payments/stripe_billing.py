"""
Stripe subscription billing: checkout, customer portal and webhook sync.

Webhook events update the subscription fields of `core.users`. Delivery order
is not guaranteed and there is no reconciliation job; the latest write wins.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

import stripe
from supabase import Client

from geeklogg_backend.models.subscription import TIER_FREE, TIER_PREMIUM, tier_for_stripe_status
from geeklogg_backend.payments.errors import PaymentError, WebhookVerificationError
from geeklogg_backend.repositories.users import (
    UserRepositoryError,
    find_user_by_stripe_customer,
    get_user,
    merge_user,
)
from geeklogg_backend.utils.env import get_client_url, resolve_env

logger = logging.getLogger(__name__)

# Metadata key linking Stripe objects back to the app user id.
USER_METADATA_KEY = "firebaseUID"


def get_stripe_api_key() -> str:
    key = resolve_env("STRIPE_SECRET_KEY")
    if not key:
        raise PaymentError("STRIPE_SECRET_KEY is not configured", status_code=500)
    return key


def _epoch_to_iso(value: Any) -> str | None:
    if not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def _load_customer_id(db: Client, user_id: str) -> str | None:
    try:
        user = get_user(db, user_id)
    except UserRepositoryError as exc:
        raise PaymentError(f"Failed to load user {user_id}: {exc}", status_code=502) from exc
    return user.stripe_customer_id if user else None


def create_checkout_session(
    db: Client,
    *,
    user_id: str | None,
    email: str | None,
    price_id: str | None = None,
) -> dict[str, Any]:
    if not user_id or not email:
        raise PaymentError("userId and email are required", status_code=400)

    stripe_price_id = price_id or resolve_env("STRIPE_PRICE_ID")
    if not stripe_price_id:
        raise PaymentError("STRIPE_PRICE_ID is not configured", status_code=500)

    api_key = get_stripe_api_key()
    customer_id = _load_customer_id(db, user_id)

    try:
        if not customer_id:
            customer = stripe.Customer.create(
                api_key=api_key,
                email=email,
                metadata={USER_METADATA_KEY: user_id},
            )
            customer_id = customer.id
            merge_user(db, user_id, {"stripe_customer_id": customer_id})
            logger.info(f"Created Stripe customer {customer_id} for user {user_id}")

        client_url = get_client_url()
        session = stripe.checkout.Session.create(
            api_key=api_key,
            customer=customer_id,
            payment_method_types=["card"],
            mode="subscription",
            line_items=[{"price": stripe_price_id, "quantity": 1}],
            success_url=f"{client_url}/premium/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{client_url}/premium/cancel",
            metadata={USER_METADATA_KEY: user_id},
            subscription_data={"metadata": {USER_METADATA_KEY: user_id}},
        )
    except stripe.StripeError as exc:
        raise PaymentError(f"Stripe error during checkout: {exc}", status_code=502) from exc
    except UserRepositoryError as exc:
        raise PaymentError(f"Failed to save Stripe customer for user {user_id}: {exc}", status_code=502) from exc
    return {"sessionId": session.id, "url": session.url}


def create_customer_portal(db: Client, *, user_id: str | None) -> dict[str, Any]:
    if not user_id:
        raise PaymentError("userId is required", status_code=400)

    customer_id = _load_customer_id(db, user_id)
    if not customer_id:
        raise PaymentError("Stripe customer not found", status_code=404)

    try:
        session = stripe.billing_portal.Session.create(
            api_key=get_stripe_api_key(),
            customer=customer_id,
            return_url=f"{get_client_url()}/profile",
        )
    except stripe.StripeError as exc:
        raise PaymentError(f"Stripe error during portal creation: {exc}", status_code=502) from exc
    return {"url": session.url}


def construct_event(payload: bytes, signature: str | None, *, secret: str | None = None) -> dict[str, Any]:
    """
    Verify the `Stripe-Signature` header and decode the event body.

    Raises `WebhookVerificationError` (HTTP 400) before any processing happens.
    """

    webhook_secret = secret or resolve_env("STRIPE_WEBHOOK_SECRET")
    if not webhook_secret:
        raise PaymentError("STRIPE_WEBHOOK_SECRET is not configured", status_code=500)
    if not signature:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else str(payload)
    except UnicodeDecodeError as exc:
        raise WebhookVerificationError("Webhook Error: invalid payload") from exc

    try:
        stripe.WebhookSignature.verify_header(text, signature, webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE)
    except stripe.SignatureVerificationError as exc:
        raise WebhookVerificationError(f"Webhook Error: {exc}") from exc

    try:
        event = json.loads(text)
    except ValueError as exc:
        raise WebhookVerificationError("Webhook Error: invalid payload") from exc
    if not isinstance(event, dict) or not event.get("type"):
        raise WebhookVerificationError("Webhook Error: invalid payload")
    return event


def _user_id_from_metadata(obj: Mapping[str, Any]) -> str | None:
    metadata = obj.get("metadata") or {}
    value = metadata.get(USER_METADATA_KEY) if isinstance(metadata, Mapping) else None
    return str(value) if value else None


def _current_period_end(subscription: Mapping[str, Any]) -> str | None:
    value = subscription.get("current_period_end")
    if value is None:
        # Newer API versions carry the period on subscription items.
        items = (subscription.get("items") or {}).get("data") or []
        if items and isinstance(items[0], Mapping):
            value = items[0].get("current_period_end")
    return _epoch_to_iso(value)


def handle_checkout_completed(db: Client, session: Mapping[str, Any]) -> None:
    logger.info(f"Checkout completed: {session.get('id')}")
    user_id = _user_id_from_metadata(session)
    if not user_id:
        logger.error("userId not found in checkout session metadata")
        return

    merge_user(
        db,
        user_id,
        {
            "stripe_customer_id": session.get("customer"),
            "stripe_subscription_id": session.get("subscription"),
            "subscription_tier": TIER_PREMIUM,
            "subscription_status": "active",
        },
    )
    logger.info(f"User {user_id} upgraded to premium")


def handle_subscription_update(db: Client, subscription: Mapping[str, Any]) -> None:
    logger.info(f"Subscription updated: {subscription.get('id')}")
    user_id = _user_id_from_metadata(subscription)
    if not user_id:
        logger.error("userId not found in subscription metadata")
        return

    status = subscription.get("status")
    tier = tier_for_stripe_status(status)
    merge_user(
        db,
        user_id,
        {
            "stripe_subscription_id": subscription.get("id"),
            "subscription_tier": tier,
            "subscription_status": status,
            "current_period_end": _current_period_end(subscription),
        },
    )
    logger.info(f"Subscription for user {user_id} updated: {tier} ({status})")


def handle_subscription_deleted(db: Client, subscription: Mapping[str, Any]) -> None:
    logger.info(f"Subscription canceled: {subscription.get('id')}")
    user_id = _user_id_from_metadata(subscription)
    if not user_id:
        logger.error("userId not found in subscription metadata")
        return

    merge_user(db, user_id, {"subscription_tier": TIER_FREE, "subscription_status": "canceled"})
    logger.info(f"User {user_id} moved back to free")


def handle_payment_succeeded(db: Client, invoice: Mapping[str, Any]) -> None:
    logger.info(f"Payment succeeded: {invoice.get('id')}")
    customer_id = invoice.get("customer")
    user = find_user_by_stripe_customer(db, str(customer_id)) if customer_id else None
    if user is None:
        logger.error(f"User not found for customer: {customer_id}")
        return

    merge_user(
        db,
        user.user_id,
        {
            "subscription_tier": TIER_PREMIUM,
            "subscription_status": "active",
            "last_payment_date": _epoch_to_iso(invoice.get("created")),
        },
    )
    logger.info(f"Payment recorded for user {user.user_id}")


def handle_payment_failed(db: Client, invoice: Mapping[str, Any]) -> None:
    logger.warning(f"Payment failed: {invoice.get('id')}")
    customer_id = invoice.get("customer")
    user = find_user_by_stripe_customer(db, str(customer_id)) if customer_id else None
    if user is None:
        logger.error(f"User not found for customer: {customer_id}")
        return

    merge_user(db, user.user_id, {"subscription_status": "past_due"})
    logger.warning(f"Subscription status set to past_due: {user.user_id}")


EVENT_HANDLERS: dict[str, Callable[[Client, Mapping[str, Any]], None]] = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_update,
    "customer.subscription.updated": handle_subscription_update,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_payment_succeeded,
    "invoice.payment_failed": handle_payment_failed,
}


def handle_event(db: Client, event: Mapping[str, Any]) -> bool:
    """
    Dispatch a verified event. Returns False for event types that are ignored.
    """

    event_type = str(event.get("type") or "")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled Stripe event: {event_type}")
        return False

    obj = (event.get("data") or {}).get("object") or {}
    handler(db, obj)
    return True
