"""Tests for campus_market.services.notification_service and reminder tasks."""

import uuid
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from campus_market import tasks
from campus_market.config import settings
from campus_market.core.exceptions import NotFoundError
from campus_market.core.permissions import BookingRole
from campus_market.domain.booking_state import BookingStatus
from campus_market.services.notification_service import NotificationService, notification_service


class TestBookingRecipients:
    """The actor never notifies themselves."""

    booking = SimpleNamespace(customer_id=uuid.uuid4(), provider_id=uuid.uuid4())

    def test_customer_acting_notifies_provider(self):
        b = self.booking
        assert notification_service.booking_recipients(b, b.customer_id, BookingRole.CUSTOMER) == [
            b.provider_id
        ]

    def test_provider_acting_notifies_customer(self):
        b = self.booking
        assert notification_service.booking_recipients(b, b.provider_id, BookingRole.PROVIDER) == [
            b.customer_id
        ]

    def test_admin_acting_notifies_both(self):
        b = self.booking
        recipients = notification_service.booking_recipients(b, uuid.uuid4(), BookingRole.ADMIN)
        assert recipients == [b.customer_id, b.provider_id]


class TestQueueBookingUpdate:
    """Tests for queue_booking_update."""

    @pytest.mark.asyncio
    async def test_notes_edit_is_a_plain_update(self, make_booking, customer, queued_notifications):
        booking = await make_booking(BookingStatus.CONFIRMED)

        notification_service.queue_booking_update(
            booking, customer.id, BookingRole.CUSTOMER, BookingStatus.CONFIRMED
        )

        kwargs = queued_notifications.call_args.kwargs
        assert kwargs["notification_type"] == NotificationService.BOOKING_UPDATED
        assert kwargs["title"] == "Booking Updated"

    @pytest.mark.asyncio
    async def test_status_change_names_both_statuses(self, make_booking, provider, queued_notifications):
        booking = await make_booking(BookingStatus.IN_PROGRESS)

        notification_service.queue_booking_update(
            booking, provider.id, BookingRole.PROVIDER, BookingStatus.CONFIRMED
        )

        kwargs = queued_notifications.call_args.kwargs
        assert kwargs["title"] == "Service Started"
        assert "from confirmed to in progress" in kwargs["body"]
        assert kwargs["action_url"] == f"/bookings/{booking.id}"


class TestNotifyUser:
    """Tests for notify_user."""

    @pytest.mark.asyncio
    async def test_stores_notification_without_email(self, db, customer):
        notification = await notification_service.notify_user(
            db,
            user_id=customer.id,
            title="Booking Confirmed",
            body="See you tomorrow.",
            notification_type=NotificationService.BOOKING_STATUS_CHANGED,
            send_email=False,
        )

        assert notification.user_id == customer.id
        assert notification.is_read is False
        assert notification.email_sent is False

    @pytest.mark.asyncio
    async def test_records_email_delivery(self, db, customer, monkeypatch):
        service = NotificationService()
        send_email = AsyncMock(return_value=True)
        monkeypatch.setattr(service, "send_email", send_email)

        notification = await service.notify_user(
            db,
            user_id=customer.id,
            title="Booking Confirmed",
            body="See you tomorrow.",
            notification_type=NotificationService.BOOKING_STATUS_CHANGED,
            action_url="/bookings/123",
        )

        assert notification.email_sent is True
        assert send_email.await_args.kwargs["to_email"] == customer.email

    @pytest.mark.asyncio
    async def test_unknown_user(self, db, random_id):
        notification = await notification_service.notify_user(
            db,
            user_id=random_id,
            title="Hello",
            body="Nobody home",
            notification_type=NotificationService.BOOKING_UPDATED,
        )
        assert notification is None


class TestInbox:
    """Tests for reading and marking the inbox."""

    @pytest.mark.asyncio
    async def test_mark_read_keeps_first_read_time(self, db, customer):
        notification = await notification_service.create_notification(
            db, customer.id, "Booking Confirmed", "See you.", NotificationService.BOOKING_STATUS_CHANGED
        )
        await db.commit()

        first = await notification_service.mark_read(db, customer.id, notification.id)
        read_at = first.read_at
        again = await notification_service.mark_read(db, customer.id, notification.id)

        assert again.is_read is True
        assert again.read_at == read_at

    @pytest.mark.asyncio
    async def test_mark_read_other_inbox(self, db, customer, outsider):
        notification = await notification_service.create_notification(
            db, customer.id, "Booking Confirmed", "See you.", NotificationService.BOOKING_STATUS_CHANGED
        )
        await db.commit()

        with pytest.raises(NotFoundError):
            await notification_service.mark_read(db, outsider.id, notification.id)

    @pytest.mark.asyncio
    async def test_mark_all_read_counts(self, db, customer):
        for _ in range(2):
            await notification_service.create_notification(
                db, customer.id, "Booking Updated", "Notes changed.", NotificationService.BOOKING_UPDATED
            )
        await db.commit()

        assert await notification_service.mark_all_read(db, customer.id) == 2
        assert await notification_service.mark_all_read(db, customer.id) == 0


class TestSendEmail:
    """Tests for the SendGrid client."""

    @pytest.mark.asyncio
    async def test_no_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "sendgrid_api_key", "")
        assert await NotificationService().send_email("a@b.c", "Hi", "<p>Hi</p>") is False

    @pytest.mark.asyncio
    async def test_accepted(self, monkeypatch):
        monkeypatch.setattr(settings, "sendgrid_api_key", "SG.test")
        service = NotificationService()
        client = MagicMock()
        client.post = AsyncMock(return_value=MagicMock(status_code=202))
        service._http_client = client

        sent = await service.send_email("wanjiru@example.com", "Hi", "<p>Hi</p>", text_content="Hi")

        assert sent is True
        payload = client.post.await_args.kwargs["json"]
        assert payload["personalizations"][0]["to"][0]["email"] == "wanjiru@example.com"
        assert payload["content"][0]["type"] == "text/plain"

    @pytest.mark.asyncio
    async def test_transport_error(self, monkeypatch):
        monkeypatch.setattr(settings, "sendgrid_api_key", "SG.test")
        service = NotificationService()
        client = MagicMock()
        client.post = AsyncMock(side_effect=httpx.ConnectError("unreachable"))
        service._http_client = client

        assert await service.send_email("a@b.c", "Hi", "<p>Hi</p>") is False


class TestBookingReminders:
    """Tests for the daily reminder sweep."""

    @pytest.mark.asyncio
    async def test_reminds_both_parties_of_tomorrows_confirmed(
        self, db, make_booking, customer, provider, tomorrow, monkeypatch
    ):
        notify_user = AsyncMock()
        monkeypatch.setattr(notification_service, "notify_user", notify_user)
        confirmed = await make_booking(BookingStatus.CONFIRMED)
        await make_booking(BookingStatus.PENDING)
        await make_booking(BookingStatus.CONFIRMED, on_date=tomorrow + timedelta(days=1))

        reminded = await tasks.remind_upcoming_bookings(db)

        assert reminded == 1
        assert {call.kwargs["user_id"] for call in notify_user.await_args_list} == {
            customer.id,
            provider.id,
        }
        assert all(call.kwargs["booking_id"] == confirmed.id for call in notify_user.await_args_list)
