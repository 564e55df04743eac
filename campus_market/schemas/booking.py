"""Booking-related Pydantic schemas."""

from datetime import date as date_type
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from campus_market.domain.booking_state import SCHEDULE_FIELDS, BookingStatus


def _check_time_window(start: datetime | None, end: datetime | None) -> None:
    if start and end and end <= start:
        raise ValueError("end_time must be after start_time")


class BookingCreate(BaseModel):
    """Schema for requesting a booking."""

    service_id: UUID
    date: date_type
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_times(self) -> "BookingCreate":
        _check_time_window(self.start_time, self.end_time)
        return self


class BookingUpdate(BaseModel):
    """Schema for a status change, a reschedule, or a notes edit."""

    status: BookingStatus | None = None
    date: date_type | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_changes(self) -> "BookingUpdate":
        if all(getattr(self, field) is None for field in type(self).model_fields):
            raise ValueError("At least one field must be provided")
        _check_time_window(self.start_time, self.end_time)
        return self

    def schedule(self) -> dict[str, Any]:
        """Schedule fields present in the request and not null."""
        return {
            field: getattr(self, field)
            for field in SCHEDULE_FIELDS
            if getattr(self, field) is not None
        }


class BookingCancelRequest(BaseModel):
    """Schema for cancelling a booking."""

    reason: str | None = Field(None, max_length=1000)


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID
    provider_id: UUID
    service_id: UUID

    # Schedule
    date: date_type
    start_time: datetime | None
    end_time: datetime | None

    status: BookingStatus
    total_amount: int
    notes: str | None

    # Cancellation
    cancellation_reason: str | None
    cancelled_by: UUID | None

    # Timestamps
    confirmed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class BookingDetailResponse(BookingResponse):
    """Booking with the names a booking page shows."""

    service_title: str | None = None
    customer_name: str | None = None
    provider_name: str | None = None


class BookingListResponse(BaseModel):
    """Schema for paginated booking list."""

    bookings: list[BookingResponse]
    total: int
    page: int
    limit: int
    pages: int


class BookingStatsResponse(BaseModel):
    """Per-user booking statistics."""

    total_bookings: int
    upcoming_bookings: int
    total_earnings: int
    status_counts: dict[BookingStatus, int]


class BookedSlot(BaseModel):
    """A slot already taken on a service's calendar."""

    model_config = ConfigDict(from_attributes=True)

    start_time: datetime | None
    end_time: datetime | None


class AvailabilityResponse(BaseModel):
    """Booked slots for a service on one day."""

    service_id: UUID
    service_title: str
    price: int
    date: date_type
    booked_slots: list[BookedSlot]
