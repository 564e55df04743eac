"""Celery background tasks.

Each task opens its own engine because a Celery worker runs every task
in a fresh event loop, and pooled asyncpg connections cannot cross loops.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from campus_market.config import settings
from campus_market.domain.booking_state import BookingStatus
from campus_market.models.booking import Booking
from campus_market.services.notification_service import notification_service
from campus_market.worker import celery_app

logger = logging.getLogger(__name__)


@asynccontextmanager
async def task_session() -> AsyncGenerator[AsyncSession, None]:
    """Short-lived session bound to the current task's event loop."""
    engine = create_async_engine(settings.database_url)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_maker() as db:
            yield db
            await db.commit()
    finally:
        await notification_service.close()
        await engine.dispose()


# ==================== NOTIFICATION TASKS ====================


@celery_app.task(bind=True, max_retries=3)
def send_notification_async(
    self,
    user_id: str,
    title: str,
    body: str,
    notification_type: str,
    action_url: str | None = None,
    booking_id: str | None = None,
):
    """Deliver a notification queued by a request handler."""
    try:
        asyncio.run(
            _send_notification(
                user_id=UUID(user_id),
                title=title,
                body=body,
                notification_type=notification_type,
                action_url=action_url,
                booking_id=UUID(booking_id) if booking_id else None,
            )
        )
    except Exception as exc:
        raise self.retry(exc=exc)


async def _send_notification(
    user_id: UUID,
    title: str,
    body: str,
    notification_type: str,
    action_url: str | None,
    booking_id: UUID | None,
) -> None:
    async with task_session() as db:
        await notification_service.notify_user(
            db,
            user_id=user_id,
            title=title,
            body=body,
            notification_type=notification_type,
            action_url=action_url,
            booking_id=booking_id,
        )


# ==================== REMINDER TASKS ====================


@celery_app.task(bind=True, max_retries=3)
def send_booking_reminders(self):
    """Remind both parties of confirmed bookings happening tomorrow."""
    try:
        sent = asyncio.run(_run_booking_reminders())
        return {"status": "success", "reminders": sent}
    except Exception as exc:
        raise self.retry(exc=exc, countdown=300)


async def _run_booking_reminders() -> int:
    async with task_session() as db:
        return await remind_upcoming_bookings(db)


async def remind_upcoming_bookings(db: AsyncSession) -> int:
    """Notify customer and provider of each confirmed booking due tomorrow.

    Returns the number of bookings reminded.
    """
    tomorrow = datetime.now(UTC).date() + timedelta(days=1)

    result = await db.execute(
        select(Booking).where(
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.date == tomorrow,
        )
    )
    bookings = result.scalars().all()

    for booking in bookings:
        when = booking.start_time.strftime("%I:%M %p") if booking.start_time else "tomorrow"
        for user_id in (booking.customer_id, booking.provider_id):
            await notification_service.notify_user(
                db,
                user_id=user_id,
                title="Booking Tomorrow",
                body=f"Reminder: you have a booking scheduled for {when} on {tomorrow.isoformat()}.",
                notification_type=notification_service.BOOKING_REMINDER,
                action_url=f"/bookings/{booking.id}",
                booking_id=booking.id,
            )

    logger.info(f"Sent reminders for {len(bookings)} bookings on {tomorrow.isoformat()}")
    return len(bookings)
