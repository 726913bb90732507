from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.db.session import get_session
from rewards_api.schemas.notification import NotificationResponse
from rewards_api.services.notifications import CustomerNotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "/recipients/{recipient_id}",
    response_model=List[NotificationResponse],
    status_code=status.HTTP_200_OK,
)
async def list_notifications(
    recipient_id: UUID,
    unread_only: bool = Query(False, alias="unreadOnly"),
    session: AsyncSession = Depends(get_session),
) -> List[NotificationResponse]:
    """Fetch the recipient's notification center, newest first."""

    service = CustomerNotificationService(session)
    notifications = await service.list_notifications(recipient_id, unread_only=unread_only)
    return [NotificationResponse.model_validate(item) for item in notifications]


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_notification_read(
    notification_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> NotificationResponse:
    service = CustomerNotificationService(session)
    notification = await service.mark_as_read(notification_id)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return NotificationResponse.model_validate(notification)
