"""Pydantic schemas for request/response validation."""

from campus_market.schemas.booking import (
    AvailabilityResponse,
    BookedSlot,
    BookingCancelRequest,
    BookingCreate,
    BookingDetailResponse,
    BookingListResponse,
    BookingResponse,
    BookingStatsResponse,
    BookingUpdate,
)
from campus_market.schemas.notification import NotificationListResponse, NotificationResponse

__all__ = [
    # Booking
    "BookingCreate",
    "BookingUpdate",
    "BookingCancelRequest",
    "BookingResponse",
    "BookingDetailResponse",
    "BookingListResponse",
    "BookingStatsResponse",
    "BookedSlot",
    "AvailabilityResponse",
    # Notification
    "NotificationResponse",
    "NotificationListResponse",
]
