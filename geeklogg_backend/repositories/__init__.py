"""
Repository layer for DB access patterns.
"""

from geeklogg_backend.repositories.medias import MediaRepositoryError, SupabaseMediaRepository
from geeklogg_backend.repositories.payment_preferences import (
    PaymentPreferenceRepositoryError,
    get_preference,
    insert_preference,
    update_preference,
)
from geeklogg_backend.repositories.users import (
    UserNotFoundError,
    UserRepositoryError,
    find_user_by_stripe_customer,
    get_user,
    merge_user,
    update_user,
)

__all__ = [
    "MediaRepositoryError",
    "PaymentPreferenceRepositoryError",
    "SupabaseMediaRepository",
    "UserNotFoundError",
    "UserRepositoryError",
    "find_user_by_stripe_customer",
    "get_preference",
    "get_user",
    "insert_preference",
    "merge_user",
    "update_preference",
    "update_user",
]
