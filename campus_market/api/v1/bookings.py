"""Booking endpoints."""

from datetime import date
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_market.api.deps import get_current_user, get_db
from campus_market.domain.booking_state import BookingStatus
from campus_market.models.booking import Booking
from campus_market.models.user import User
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
from campus_market.services.booking_service import booking_service

router = APIRouter()


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Request a booking for a service."""
    return await booking_service.create_booking(db, current_user, booking_data)


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    role: Literal["customer", "provider", "all"] = Query(default="customer"),
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> BookingListResponse:
    """Bookings where the user is customer, provider, or either."""
    bookings, total, pages = await booking_service.list_bookings(
        db,
        current_user,
        role=role,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        pages=pages,
    )


@router.get("/upcoming", response_model=list[BookingResponse])
async def upcoming_bookings(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(default=10, ge=1, le=50),
) -> list[Booking]:
    """Pending and confirmed bookings from today onwards."""
    return await booking_service.upcoming_bookings(db, current_user, limit=limit)


@router.get("/stats", response_model=BookingStatsResponse)
async def booking_stats(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingStatsResponse:
    """Booking counts and earnings for the dashboard."""
    return BookingStatsResponse(**await booking_service.booking_stats(db, current_user))


@router.get("/availability", response_model=AvailabilityResponse)
async def check_availability(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    service_id: UUID = Query(...),
    on_date: date = Query(..., alias="date"),
) -> AvailabilityResponse:
    """Slots already taken on a service for a given day."""
    service, bookings = await booking_service.booked_slots(db, service_id, on_date)
    return AvailabilityResponse(
        service_id=service.id,
        service_title=service.title,
        price=service.price,
        date=on_date,
        booked_slots=[BookedSlot.model_validate(b) for b in bookings],
    )


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingDetailResponse:
    """Get a booking by ID (parties and admins only)."""
    booking = await booking_service.get_booking_for_user(db, booking_id, current_user)
    return BookingDetailResponse(
        **BookingResponse.model_validate(booking).model_dump(),
        service_title=booking.service.title,
        customer_name=booking.customer.name,
        provider_name=booking.provider.name,
    )


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: UUID,
    request: BookingUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Change status, reschedule (pending only) or edit notes."""
    return await booking_service.request_transition(
        db,
        booking_id,
        current_user,
        status=request.status,
        schedule=request.schedule(),
        notes=request.notes,
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    request: BookingCancelRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Cancel a booking with an optional reason."""
    return await booking_service.cancel_booking(db, booking_id, current_user, request.reason)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Permanently delete a pending booking."""
    await booking_service.request_deletion(db, booking_id, current_user)
