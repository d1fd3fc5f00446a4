"""
Payment provider glue (Stripe, Mercado Pago) that syncs subscription state into `core.users`.
"""

from geeklogg_backend.payments.errors import PaymentError, WebhookVerificationError

__all__ = [
    "PaymentError",
    "WebhookVerificationError",
]
