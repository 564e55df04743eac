"""Database models."""

from campus_market.models.booking import Booking
from campus_market.models.notification import Notification
from campus_market.models.service import Service
from campus_market.models.user import User

__all__ = [
    "User",
    "Service",
    "Booking",
    "Notification",
]
