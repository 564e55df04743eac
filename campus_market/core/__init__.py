"""Core utilities and security modules."""

from campus_market.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    BookingConflict,
    InvalidBookingOperation,
    NotFoundError,
    ValidationError,
)
from campus_market.core.permissions import BookingRole, UserRole, resolve_booking_role
from campus_market.core.security import create_access_token, verify_token

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "BookingConflict",
    "InvalidBookingOperation",
    "NotFoundError",
    "ValidationError",
    "BookingRole",
    "UserRole",
    "resolve_booking_role",
    "create_access_token",
    "verify_token",
]
