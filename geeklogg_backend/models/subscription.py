from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

TIER_FREE = "free"
TIER_PREMIUM = "premium"

# Stripe subscription statuses that keep premium access.
PREMIUM_STRIPE_STATUSES = frozenset({"active", "trialing"})

PREFERENCE_PENDING = "pending"
PREFERENCE_APPROVED = "approved"
PREFERENCE_REJECTED = "rejected"
PREFERENCE_CANCELLED = "cancelled"


def tier_for_stripe_status(status: str | None) -> str:
    return TIER_PREMIUM if (status or "") in PREMIUM_STRIPE_STATUSES else TIER_FREE


@dataclass(frozen=True)
class SubscriptionRecord:
    """
    Subscription fields of a `core.users` row.

    Written only by the payment flows; read by the client to gate premium features.
    """

    user_id: str
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    subscription_tier: str = TIER_FREE
    subscription_status: str | None = None
    current_period_end: str | None = None
    last_payment_date: str | None = None
    last_payment_id: str | None = None
    is_premium: bool = False
    premium_since: str | None = None
    premium_plan: str | None = None
    premium_cancelled_at: str | None = None
    updated_at: str | None = None

    @property
    def has_premium_access(self) -> bool:
        return self.is_premium or self.subscription_tier == TIER_PREMIUM

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SubscriptionRecord:
        last_payment_id = row.get("last_payment_id")
        return cls(
            user_id=str(row.get("id") or ""),
            stripe_customer_id=row.get("stripe_customer_id"),
            stripe_subscription_id=row.get("stripe_subscription_id"),
            subscription_tier=row.get("subscription_tier") or TIER_FREE,
            subscription_status=row.get("subscription_status"),
            current_period_end=row.get("current_period_end"),
            last_payment_date=row.get("last_payment_date"),
            last_payment_id=str(last_payment_id) if last_payment_id is not None else None,
            is_premium=bool(row.get("is_premium")),
            premium_since=row.get("premium_since"),
            premium_plan=row.get("premium_plan"),
            premium_cancelled_at=row.get("premium_cancelled_at"),
            updated_at=row.get("updated_at"),
        )
