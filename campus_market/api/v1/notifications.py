"""Notification inbox endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_market.api.deps import get_current_user, get_db
from campus_market.models.user import User
from campus_market.schemas.notification import NotificationListResponse, NotificationResponse
from campus_market.services.notification_service import notification_service

router = APIRouter()


@router.get("/", response_model=NotificationListResponse)
async def list_notifications(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    unread_only: bool = Query(default=False),
    booking_id: UUID | None = Query(default=None),
    notification_type: str | None = Query(default=None, alias="type"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> NotificationListResponse:
    """The user's inbox, optionally narrowed to one booking or event type."""
    notifications, total, unread_count = await notification_service.list_notifications(
        db,
        current_user.id,
        unread_only=unread_only,
        booking_id=booking_id,
        notification_type=notification_type,
        page=page,
        page_size=page_size,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=unread_count,
        page=page,
        page_size=page_size,
    )


@router.patch("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notification_read(
    notification_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    await notification_service.mark_read(db, current_user.id, notification_id)


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
async def mark_all_read(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    booking_id: UUID | None = Query(default=None),
) -> None:
    """Mark the inbox read, or only what concerns one booking."""
    await notification_service.mark_all_read(db, current_user.id, booking_id=booking_id)
