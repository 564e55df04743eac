"""Tests for campus_market.domain.booking_state module."""

import pytest

from campus_market.core.exceptions import AuthorizationError, InvalidBookingOperation
from campus_market.core.permissions import BookingRole
from campus_market.domain.booking_state import (
    BOOKING_TRANSITIONS,
    BookingStatus,
    assert_booking_transition,
    assert_schedule_editable,
    is_terminal,
)

P = BookingStatus
ORDINARY_ROLES = (BookingRole.CUSTOMER, BookingRole.PROVIDER)

# Every (current, target, role) the table does not grant to an ordinary role
UNGRANTED = [
    (current, target, role)
    for current in BookingStatus
    for target in BookingStatus
    for role in ORDINARY_ROLES
    if role not in BOOKING_TRANSITIONS[current].get(target, frozenset())
]


class TestAllowedEdges:
    """Every edge in the table is open to its listed roles."""

    @pytest.mark.parametrize(
        "current,target,role",
        [
            (P.PENDING, P.CONFIRMED, BookingRole.PROVIDER),
            (P.PENDING, P.IN_PROGRESS, BookingRole.PROVIDER),
            (P.PENDING, P.COMPLETED, BookingRole.PROVIDER),
            (P.PENDING, P.CANCELLED, BookingRole.CUSTOMER),
            (P.CONFIRMED, P.IN_PROGRESS, BookingRole.PROVIDER),
            (P.CONFIRMED, P.COMPLETED, BookingRole.PROVIDER),
            (P.CONFIRMED, P.CANCELLED, BookingRole.CUSTOMER),
            (P.CONFIRMED, P.CANCELLED, BookingRole.PROVIDER),
            (P.IN_PROGRESS, P.COMPLETED, BookingRole.PROVIDER),
            (P.IN_PROGRESS, P.CANCELLED, BookingRole.PROVIDER),
        ],
    )
    def test_party_edges(self, current, target, role):
        """Listed party may take the edge, and it is not an override."""
        assert assert_booking_transition(current, target, role) is False

    @pytest.mark.parametrize(
        "current,target",
        [(current, target) for current, edges in BOOKING_TRANSITIONS.items() for target in edges],
    )
    def test_admin_takes_every_listed_edge(self, current, target):
        """Admin is allowed on every edge of the table."""
        assert assert_booking_transition(current, target, BookingRole.ADMIN) is False

    def test_accepts_plain_strings(self):
        """Stored statuses are plain strings."""
        assert assert_booking_transition("PENDING", "CONFIRMED", BookingRole.PROVIDER) is False


class TestRejectedEdges:
    """Anything outside the table, or by the wrong party, is rejected."""

    @pytest.mark.parametrize("current,target,role", UNGRANTED)
    def test_unlisted_pairs_are_rejected(self, current, target, role):
        """No ordinary role gets through on a pair the table does not grant it."""
        with pytest.raises((AuthorizationError, InvalidBookingOperation)):
            assert_booking_transition(current, target, role)

    def test_customer_cannot_confirm(self):
        """Confirming is the provider's call."""
        with pytest.raises(AuthorizationError) as exc_info:
            assert_booking_transition(P.PENDING, P.CONFIRMED, BookingRole.CUSTOMER)
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Only the service provider can perform this action"

    def test_provider_cannot_cancel_pending(self):
        """Only the customer withdraws a pending request."""
        with pytest.raises(AuthorizationError) as exc_info:
            assert_booking_transition(P.PENDING, P.CANCELLED, BookingRole.PROVIDER)
        assert exc_info.value.detail == "Only the customer can cancel a pending booking"

    def test_customer_cannot_cancel_in_progress(self):
        """Once work has started only the provider can cancel."""
        with pytest.raises(AuthorizationError) as exc_info:
            assert_booking_transition(P.IN_PROGRESS, P.CANCELLED, BookingRole.CUSTOMER)
        assert exc_info.value.detail == "Only the service provider can perform this action"

    def test_backward_move_is_invalid(self):
        """Confirmed bookings do not return to pending."""
        with pytest.raises(InvalidBookingOperation):
            assert_booking_transition(P.CONFIRMED, P.PENDING, BookingRole.PROVIDER)

    def test_backward_move_invalid_for_admin_too(self):
        """Admin cannot move a live booking along an edge that does not exist."""
        with pytest.raises(InvalidBookingOperation):
            assert_booking_transition(P.IN_PROGRESS, P.CONFIRMED, BookingRole.ADMIN)

    @pytest.mark.parametrize("role", [*ORDINARY_ROLES, BookingRole.ADMIN])
    @pytest.mark.parametrize("status", list(BookingStatus))
    def test_same_status_is_rejected(self, status, role):
        """Re-submitting the current status is not silently accepted."""
        with pytest.raises(InvalidBookingOperation):
            assert_booking_transition(status, status, role)

    @pytest.mark.parametrize("target", list(BookingStatus))
    def test_unauthorized_actor_is_forbidden(self, target):
        """Strangers are refused before the table is consulted."""
        with pytest.raises(AuthorizationError):
            assert_booking_transition(P.PENDING, target, BookingRole.UNAUTHORIZED)


class TestTerminalStates:
    """Completed and cancelled bookings are closed to ordinary actors."""

    @pytest.mark.parametrize("role", ORDINARY_ROLES)
    def test_completed_is_closed(self, role):
        with pytest.raises(InvalidBookingOperation) as exc_info:
            assert_booking_transition(P.COMPLETED, P.CANCELLED, role)
        assert exc_info.value.detail == "Cannot update a completed or cancelled booking"

    @pytest.mark.parametrize("role", ORDINARY_ROLES)
    def test_cancelled_is_closed(self, role):
        with pytest.raises(InvalidBookingOperation):
            assert_booking_transition(P.CANCELLED, P.CONFIRMED, role)

    @pytest.mark.parametrize("current", [P.COMPLETED, P.CANCELLED])
    @pytest.mark.parametrize("target", [P.PENDING, P.CONFIRMED, P.IN_PROGRESS])
    def test_admin_override_is_flagged(self, current, target):
        """Admin may reopen a terminal booking; the call reports it as an override."""
        assert assert_booking_transition(current, target, BookingRole.ADMIN) is True

    def test_is_terminal(self):
        assert is_terminal("COMPLETED")
        assert is_terminal(P.CANCELLED)
        assert not is_terminal(P.IN_PROGRESS)


class TestScheduleLock:
    """Date and time only move while pending."""

    def test_pending_is_editable(self):
        assert_schedule_editable(P.PENDING)

    @pytest.mark.parametrize("status", [P.CONFIRMED, P.IN_PROGRESS, P.COMPLETED, P.CANCELLED])
    def test_other_statuses_are_locked(self, status):
        with pytest.raises(InvalidBookingOperation) as exc_info:
            assert_schedule_editable(status)
        assert exc_info.value.detail == "Can only update date/time for pending bookings"
