"""
Domain models shared across the API and scripts.
"""

from geeklogg_backend.models.media import (
    CreateMediaRequest,
    MediaEntity,
    MediaProgress,
    MediaRating,
    MediaType,
    Status,
    UpdateMediaRequest,
)
from geeklogg_backend.models.subscription import SubscriptionRecord

__all__ = [
    "CreateMediaRequest",
    "MediaEntity",
    "MediaProgress",
    "MediaRating",
    "MediaType",
    "Status",
    "SubscriptionRecord",
    "UpdateMediaRequest",
]
