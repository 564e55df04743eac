"""Booking lifecycle service.

Every status write goes through ``conditional_update``, a compare-and-set
on the status read at the start of the request. Two requests racing on
the same booking cannot both win; the loser gets ``BookingConflict`` and
must reload.
"""

import logging
import math
from datetime import UTC, date, datetime
from typing import Any, Literal
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campus_market.core.exceptions import (
    AuthorizationError,
    BookingConflict,
    InvalidBookingOperation,
    NotFoundError,
    ValidationError,
)
from campus_market.core.permissions import BookingRole, is_admin, resolve_booking_role
from campus_market.domain.booking_state import (
    ACTIVE_STATUSES,
    BookingStatus,
    assert_booking_transition,
    assert_schedule_editable,
)
from campus_market.models.booking import Booking
from campus_market.models.service import Service
from campus_market.models.user import User
from campus_market.schemas.booking import BookingCreate
from campus_market.services.notification_service import notification_service

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "No reason provided"

# Column set on entry to a status
_STATUS_TIMESTAMPS = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


class BookingService:
    """Service for creating, transitioning and deleting bookings."""

    # ==================== PERSISTENCE ====================

    async def find_booking(self, db: AsyncSession, booking_id: UUID) -> Booking | None:
        """Load the current row, bypassing any stale copy in the session."""
        result = await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        booking = await self.find_booking(db, booking_id)
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def get_booking_for_user(self, db: AsyncSession, booking_id: UUID, user: User) -> Booking:
        """Load a booking with its service and parties, for parties and admins only."""
        result = await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .options(
                selectinload(Booking.service),
                selectinload(Booking.customer),
                selectinload(Booking.provider),
            )
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        if resolve_booking_role(user, booking) == BookingRole.UNAUTHORIZED:
            raise AuthorizationError("Not authorized to view this booking")
        return booking

    async def conditional_update(
        self,
        db: AsyncSession,
        booking_id: UUID,
        expected_status: BookingStatus,
        patch: dict[str, Any],
    ) -> Booking:
        """Apply ``patch`` only if the booking still has ``expected_status``.

        Raises:
            NotFoundError: the booking no longer exists
            BookingConflict: the booking exists but its status moved on
        """
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected_status.value)
            .values(**patch)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            if await self.find_booking(db, booking_id) is None:
                raise NotFoundError("Booking", str(booking_id))
            logger.info(
                f"Conflict on booking {booking_id}: status is no longer {expected_status.value}"
            )
            raise BookingConflict()
        return await self.get_booking(db, booking_id)

    # ==================== CREATION ====================

    async def create_booking(self, db: AsyncSession, customer: User, data: BookingCreate) -> Booking:
        """Create a PENDING booking priced from the service."""
        result = await db.execute(select(Service).where(Service.id == data.service_id))
        service = result.scalar_one_or_none()
        if not service or not service.is_active:
            raise NotFoundError("Service", str(data.service_id))

        if service.provider_id == customer.id:
            raise ValidationError("You cannot book your own service")

        booking = Booking(
            customer_id=customer.id,
            provider_id=service.provider_id,
            service_id=service.id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            notes=data.notes,
            total_amount=service.price,
            status=BookingStatus.PENDING.value,
        )
        db.add(booking)
        await db.commit()
        await db.refresh(booking)

        logger.info(f"Booking {booking.id} created by {customer.id} for service {service.id}")
        notification_service.queue_booking_request(booking)
        return booking

    # ==================== LIFECYCLE ====================

    async def request_transition(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor: User,
        status: BookingStatus | None = None,
        schedule: dict[str, Any] | None = None,
        notes: str | None = None,
        cancellation_reason: str | None = None,
    ) -> Booking:
        """Validate and apply a status change, reschedule and/or notes edit.

        Checks run in order and the first failure wins; nothing is written
        unless every check passes. The counterparty is notified after commit.
        """
        booking = await self.get_booking(db, booking_id)
        current = BookingStatus(booking.status)
        role = resolve_booking_role(actor, booking)

        if role == BookingRole.UNAUTHORIZED:
            raise AuthorizationError("Not authorized to update this booking")

        if status is None and not schedule and notes is None:
            raise ValidationError("No changes requested")

        now = datetime.now(UTC)
        patch: dict[str, Any] = {"updated_at": now}

        if status is not None:
            is_override = assert_booking_transition(current, status, role)
            if is_override:
                logger.warning(
                    f"Admin {actor.id} overriding terminal booking {booking_id}: "
                    f"{current.value} → {status.value}"
                )
            patch["status"] = status.value
            timestamp_field = _STATUS_TIMESTAMPS.get(status)
            if timestamp_field:
                patch[timestamp_field] = now
            if status == BookingStatus.CANCELLED:
                patch["cancelled_by"] = actor.id
                patch["cancellation_reason"] = cancellation_reason or DEFAULT_CANCELLATION_REASON

        if schedule:
            assert_schedule_editable(current)
            start = schedule.get("start_time", booking.start_time)
            end = schedule.get("end_time", booking.end_time)
            if start and end and _as_utc(end) <= _as_utc(start):
                raise ValidationError("end_time must be after start_time")
            patch.update(schedule)

        if notes is not None:
            patch["notes"] = notes

        updated = await self.conditional_update(db, booking_id, current, patch)
        await db.commit()

        if status is not None:
            logger.info(
                f"Booking {booking_id} {current.value} → {status.value} by {role.value} {actor.id}"
            )
        notification_service.queue_booking_update(updated, actor.id, role, current)
        return updated

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor: User,
        reason: str | None = None,
    ) -> Booking:
        """Cancel with a reason; same rules as any other transition."""
        return await self.request_transition(
            db,
            booking_id,
            actor,
            status=BookingStatus.CANCELLED,
            cancellation_reason=reason,
        )

    async def request_deletion(self, db: AsyncSession, booking_id: UUID, actor: User) -> None:
        """Permanently delete a PENDING booking."""
        booking = await self.get_booking(db, booking_id)

        if BookingStatus(booking.status) != BookingStatus.PENDING:
            raise InvalidBookingOperation("Only pending bookings can be deleted")

        if resolve_booking_role(actor, booking) == BookingRole.UNAUTHORIZED:
            raise AuthorizationError("Not authorized to delete this booking")

        result = await db.execute(
            delete(Booking).where(
                Booking.id == booking_id,
                Booking.status == BookingStatus.PENDING.value,
            )
        )
        if result.rowcount == 0:
            raise BookingConflict()
        await db.commit()
        logger.info(f"Booking {booking_id} deleted by {actor.id}")

    # ==================== QUERIES ====================

    async def list_bookings(
        self,
        db: AsyncSession,
        user: User,
        role: Literal["customer", "provider", "all"] = "customer",
        status: BookingStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int, int]:
        """Return (bookings, total, pages), newest first."""
        query = select(Booking)
        if role == "customer":
            query = query.where(Booking.customer_id == user.id)
        elif role == "provider":
            query = query.where(Booking.provider_id == user.id)
        elif not is_admin(user):
            query = query.where(
                or_(Booking.customer_id == user.id, Booking.provider_id == user.id)
            )

        if status:
            query = query.where(Booking.status == status.value)
        if start_date:
            query = query.where(Booking.date >= start_date)
        if end_date:
            query = query.where(Booking.date <= end_date)

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        offset = (page - 1) * limit
        result = await db.execute(
            query.order_by(Booking.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total, math.ceil(total / limit)

    def _involving(self, user: User):
        return or_(Booking.customer_id == user.id, Booking.provider_id == user.id)

    async def upcoming_bookings(self, db: AsyncSession, user: User, limit: int = 10) -> list[Booking]:
        """Pending or confirmed bookings from today on, soonest first."""
        result = await db.execute(
            select(Booking)
            .where(
                self._involving(user),
                Booking.status.in_([s.value for s in ACTIVE_STATUSES]),
                Booking.date >= datetime.now(UTC).date(),
            )
            .order_by(Booking.date, Booking.start_time)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def booking_stats(self, db: AsyncSession, user: User) -> dict[str, Any]:
        """Counts per status, upcoming count and provider earnings."""
        rows = await db.execute(
            select(Booking.status, func.count())
            .where(self._involving(user))
            .group_by(Booking.status)
        )
        status_counts = {status: 0 for status in BookingStatus}
        for status_value, count in rows.all():
            status_counts[BookingStatus(status_value)] = count

        upcoming = await db.execute(
            select(func.count()).where(
                self._involving(user),
                Booking.status.in_([s.value for s in ACTIVE_STATUSES]),
                Booking.date >= datetime.now(UTC).date(),
            )
        )
        earnings = await db.execute(
            select(func.coalesce(func.sum(Booking.total_amount), 0)).where(
                Booking.provider_id == user.id,
                Booking.status == BookingStatus.COMPLETED.value,
            )
        )

        return {
            "total_bookings": sum(status_counts.values()),
            "upcoming_bookings": upcoming.scalar() or 0,
            "total_earnings": earnings.scalar() or 0,
            "status_counts": status_counts,
        }

    async def booked_slots(
        self, db: AsyncSession, service_id: UUID, on_date: date
    ) -> tuple[Service, list[Booking]]:
        """Active bookings holding slots on a service for one day."""
        result = await db.execute(select(Service).where(Service.id == service_id))
        service = result.scalar_one_or_none()
        if not service:
            raise NotFoundError("Service", str(service_id))

        result = await db.execute(
            select(Booking)
            .where(
                Booking.service_id == service_id,
                Booking.date == on_date,
                Booking.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
            .order_by(Booking.start_time)
        )
        return service, list(result.scalars().all())


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes come back from stores without tz support; treat them as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


# Singleton instance
booking_service = BookingService()
