"""Booking state machine."""

from enum import Enum

from campus_market.core.exceptions import AuthorizationError, InvalidBookingOperation
from campus_market.core.permissions import BookingRole


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

# Statuses that still hold a slot on the provider's calendar
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

SCHEDULE_FIELDS = ("date", "start_time", "end_time")

_PROVIDER = frozenset({BookingRole.PROVIDER, BookingRole.ADMIN})
_CUSTOMER = frozenset({BookingRole.CUSTOMER, BookingRole.ADMIN})
_EITHER_PARTY = frozenset({BookingRole.CUSTOMER, BookingRole.PROVIDER, BookingRole.ADMIN})

# from -> to -> roles allowed to take the edge
BOOKING_TRANSITIONS: dict[BookingStatus, dict[BookingStatus, frozenset[BookingRole]]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED: _PROVIDER,
        BookingStatus.IN_PROGRESS: _PROVIDER,
        BookingStatus.COMPLETED: _PROVIDER,
        BookingStatus.CANCELLED: _CUSTOMER,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.IN_PROGRESS: _PROVIDER,
        BookingStatus.COMPLETED: _PROVIDER,
        BookingStatus.CANCELLED: _EITHER_PARTY,
    },
    BookingStatus.IN_PROGRESS: {
        BookingStatus.COMPLETED: _PROVIDER,
        BookingStatus.CANCELLED: _PROVIDER,
    },
    BookingStatus.COMPLETED: {},
    BookingStatus.CANCELLED: {},
}

_PARTY_NAMES = {
    BookingRole.PROVIDER: "provider",
    BookingRole.CUSTOMER: "customer",
}


def is_terminal(status: BookingStatus | str) -> bool:
    return BookingStatus(status) in TERMINAL_STATUSES


def permitted_party_message(
    current: BookingStatus, target: BookingStatus, allowed: frozenset[BookingRole]
) -> str:
    """Explain which party may take the edge."""
    parties = [name for role, name in _PARTY_NAMES.items() if role in allowed]
    if target != BookingStatus.CANCELLED or parties == ["provider"]:
        return "Only the service provider can perform this action"
    state = current.value.lower().replace("_", " ")
    return f"Only the {' or '.join(parties)} can cancel a {state} booking"


def assert_booking_transition(
    current: BookingStatus | str, target: BookingStatus | str, role: BookingRole
) -> bool:
    """Check that ``role`` may move a booking from ``current`` to ``target``.

    Returns True when the move is an admin override out of a terminal state.
    Raises InvalidBookingOperation for moves no one may make and
    AuthorizationError for moves this role may not make.
    """
    current = BookingStatus(current)
    target = BookingStatus(target)

    if role == BookingRole.UNAUTHORIZED:
        raise AuthorizationError("Not authorized to update this booking")

    if current == target:
        raise InvalidBookingOperation(f"Booking is already {current.value}")

    if current in TERMINAL_STATUSES:
        if role != BookingRole.ADMIN:
            raise InvalidBookingOperation("Cannot update a completed or cancelled booking")
        return True

    allowed = BOOKING_TRANSITIONS[current].get(target)
    if allowed is None:
        raise InvalidBookingOperation(
            f"Invalid booking transition: {current.value} → {target.value}"
        )
    if role not in allowed:
        raise AuthorizationError(permitted_party_message(current, target, allowed))
    return False


def assert_schedule_editable(current: BookingStatus | str) -> None:
    """Date and time fields only move while the booking is pending."""
    if BookingStatus(current) != BookingStatus.PENDING:
        raise InvalidBookingOperation("Can only update date/time for pending bookings")
