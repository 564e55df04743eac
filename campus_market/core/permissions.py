"""Platform roles and booking-relative role resolution."""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from campus_market.models.booking import Booking
    from campus_market.models.user import User


class UserRole(str, Enum):
    """Platform-wide user roles."""

    USER = "USER"
    PROVIDER = "PROVIDER"
    ADMIN = "ADMIN"


class BookingRole(str, Enum):
    """Role an actor plays with respect to one specific booking."""

    CUSTOMER = "CUSTOMER"
    PROVIDER = "PROVIDER"
    ADMIN = "ADMIN"
    UNAUTHORIZED = "UNAUTHORIZED"


def is_admin(user: "User") -> bool:
    """Check the admin capability on the persisted user record."""
    return user.role == UserRole.ADMIN.value


def resolve_booking_role(user: "User", booking: "Booking") -> BookingRole:
    """Resolve what the user is to this booking.

    Admin wins over party membership, so an admin who also booked the
    service is treated as an admin.
    """
    if is_admin(user):
        return BookingRole.ADMIN
    if booking.customer_id == user.id:
        return BookingRole.CUSTOMER
    if booking.provider_id == user.id:
        return BookingRole.PROVIDER
    return BookingRole.UNAUTHORIZED
