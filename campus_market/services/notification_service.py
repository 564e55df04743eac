"""Notification service for in-app notifications and email.

Handles the two delivery channels the marketplace uses:
- In-app notifications (database)
- Email (SendGrid)

Booking events are queued onto the Celery worker so request handlers
never wait on delivery.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campus_market.config import settings
from campus_market.core.exceptions import NotFoundError
from campus_market.core.permissions import BookingRole
from campus_market.domain.booking_state import BookingStatus
from campus_market.models.booking import Booking
from campus_market.models.notification import Notification
from campus_market.models.user import User

logger = logging.getLogger(__name__)

_STATUS_TITLES = {
    BookingStatus.PENDING: "Booking Pending",
    BookingStatus.CONFIRMED: "Booking Confirmed",
    BookingStatus.IN_PROGRESS: "Service Started",
    BookingStatus.COMPLETED: "Booking Completed",
    BookingStatus.CANCELLED: "Booking Cancelled",
}


class NotificationService:
    """Service for sending notifications across all channels."""

    # Notification types
    BOOKING_REQUEST = "booking_request"
    BOOKING_STATUS_CHANGED = "booking_status_changed"
    BOOKING_UPDATED = "booking_updated"
    BOOKING_REMINDER = "booking_reminder"

    def __init__(self) -> None:
        """Initialize notification service."""
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== IN-APP NOTIFICATIONS ====================

    async def create_notification(
        self,
        db: AsyncSession,
        user_id: UUID,
        title: str,
        body: str,
        notification_type: str,
        action_url: str | None = None,
        booking_id: UUID | None = None,
    ) -> Notification:
        """Create an in-app notification.

        Args:
            db: Database session
            user_id: User to notify
            title: Notification title
            body: Notification body text
            notification_type: Type of notification
            action_url: Optional deep link URL
            booking_id: Related booking ID

        Returns:
            Notification: Created notification
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            body=body,
            notification_type=notification_type,
            action_url=action_url,
            booking_id=booking_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    async def list_notifications(
        self,
        db: AsyncSession,
        user_id: UUID,
        unread_only: bool = False,
        booking_id: UUID | None = None,
        notification_type: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Notification], int, int]:
        """Return (notifications, total, unread_count) for one inbox, newest first.

        ``unread_count`` covers the whole inbox, not just the filtered view.
        """
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        if booking_id:
            query = query.where(Notification.booking_id == booking_id)
        if notification_type:
            query = query.where(Notification.notification_type == notification_type)

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        unread = await db.execute(
            select(func.count()).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )

        result = await db.execute(
            query.order_by(Notification.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total, unread.scalar() or 0

    async def mark_read(self, db: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification:
        """Mark one of the user's notifications read; others' are reported missing."""
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotFoundError("Notification", str(notification_id))

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(UTC)
        await db.commit()
        return notification

    async def mark_all_read(
        self, db: AsyncSession, user_id: UUID, booking_id: UUID | None = None
    ) -> int:
        """Mark unread notifications read, optionally only those about one booking."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        if booking_id:
            stmt = stmt.where(Notification.booking_id == booking_id)
        result = await db.execute(
            stmt.values(is_read=True, read_at=datetime.now(UTC)).execution_options(
                synchronize_session=False
            )
        )
        await db.commit()
        return result.rowcount

    # ==================== EMAIL (SENDGRID) ====================

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SendGrid.

        Returns:
            bool: True if SendGrid accepted the message
        """
        if not settings.sendgrid_api_key:
            return False

        headers = {
            "Authorization": f"Bearer {settings.sendgrid_api_key}",
            "Content-Type": "application/json",
        }
        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {
                "email": settings.email_from_address,
                "name": settings.email_from_name,
            },
            "subject": subject,
            "content": [{"type": "text/html", "value": html_content}],
        }
        if text_content:
            payload["content"].insert(0, {"type": "text/plain", "value": text_content})

        try:
            response = await self.http_client.post(
                "https://api.sendgrid.com/v3/mail/send",
                headers=headers,
                json=payload,
            )
        except httpx.HTTPError as e:
            logger.warning(f"SendGrid request to {to_email} failed: {e}")
            return False
        return response.status_code in (200, 202)

    # ==================== HIGH-LEVEL NOTIFICATION METHODS ====================

    async def notify_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        title: str,
        body: str,
        notification_type: str,
        action_url: str | None = None,
        booking_id: UUID | None = None,
        send_email: bool = True,
    ) -> Notification | None:
        """Store an in-app notification and email the user if possible."""
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            return None

        notification = await self.create_notification(
            db=db,
            user_id=user_id,
            title=title,
            body=body,
            notification_type=notification_type,
            action_url=action_url,
            booking_id=booking_id,
        )

        if send_email and user.email:
            notification.email_sent = await self.send_email(
                to_email=user.email,
                subject=title,
                html_content=self._generate_email_html(title, body, action_url),
                text_content=body,
            )

        return notification

    def _generate_email_html(self, title: str, body: str, action_url: str | None) -> str:
        """Generate simple HTML email content."""
        button_html = ""
        if action_url:
            button_html = f"""
            <p style="margin-top: 24px;">
                <a href="{settings.frontend_url}{action_url}"
                   style="background-color: #15803d; color: white; padding: 12px 24px;
                          text-decoration: none; border-radius: 6px; display: inline-block;">
                    View Booking
                </a>
            </p>
            """

        return f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                     max-width: 600px; margin: 0 auto; padding: 20px; color: #333;">
            <h1 style="color: #111827; font-size: 22px;">{title}</h1>
            <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">{body}</p>
            {button_html}
            <p style="color: #9ca3af; font-size: 12px; margin-top: 24px; text-align: center;">
                &copy; {datetime.now(UTC).year} {settings.app_name}
            </p>
        </body>
        </html>
        """

    # ==================== BOOKING EVENTS ====================

    def booking_recipients(self, booking: Booking, actor_id: UUID, role: BookingRole) -> list[UUID]:
        """Counterparty of the actor; both parties when an admin acted."""
        if role == BookingRole.CUSTOMER:
            return [booking.provider_id]
        if role == BookingRole.PROVIDER:
            return [booking.customer_id]
        return [uid for uid in (booking.customer_id, booking.provider_id) if uid != actor_id]

    def queue_booking_event(
        self,
        booking: Booking,
        recipients: list[UUID],
        title: str,
        body: str,
        notification_type: str,
    ) -> None:
        """Hand notifications to the worker without blocking the caller.

        Failures are logged and swallowed so the committed booking change
        stands regardless of the broker's health.
        """
        from campus_market.tasks import send_notification_async

        for recipient_id in recipients:
            try:
                send_notification_async.delay(
                    user_id=str(recipient_id),
                    title=title,
                    body=body,
                    notification_type=notification_type,
                    action_url=f"/bookings/{booking.id}",
                    booking_id=str(booking.id),
                )
            except Exception as e:
                logger.warning(
                    f"Could not queue {notification_type} for booking {booking.id} "
                    f"to user {recipient_id}: {e}"
                )

    def queue_booking_request(self, booking: Booking) -> None:
        """Tell the provider a new booking request arrived."""
        self.queue_booking_event(
            booking,
            recipients=[booking.provider_id],
            title="New Booking Request",
            body=f"You have a new booking request for {booking.date.isoformat()}.",
            notification_type=self.BOOKING_REQUEST,
        )

    def queue_booking_update(
        self,
        booking: Booking,
        actor_id: UUID,
        role: BookingRole,
        previous_status: BookingStatus,
    ) -> None:
        """Tell the counterparty about a status change or an edit."""
        status = BookingStatus(booking.status)
        if status != previous_status:
            title = _STATUS_TITLES[status]
            body = (
                f"Your booking for {booking.date.isoformat()} moved from "
                f"{previous_status.value.replace('_', ' ').lower()} to "
                f"{status.value.replace('_', ' ').lower()}."
            )
            notification_type = self.BOOKING_STATUS_CHANGED
        else:
            title = "Booking Updated"
            body = f"Your booking for {booking.date.isoformat()} was updated."
            notification_type = self.BOOKING_UPDATED

        self.queue_booking_event(
            booking,
            recipients=self.booking_recipients(booking, actor_id, role),
            title=title,
            body=body,
            notification_type=notification_type,
        )


# Singleton instance
notification_service = NotificationService()
