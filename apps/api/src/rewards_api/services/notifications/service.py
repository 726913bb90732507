"""Persisted in-app notifications for customers and businesses."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.models.notification import Notification, NotificationTypeEnum


class CustomerNotificationService:
    """Writes and reads notification center entries."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def create_notification(
        self,
        *,
        recipient_id: UUID,
        business_id: UUID | None,
        notification_type: NotificationTypeEnum,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        requires_action: bool = False,
        action_taken: bool = False,
        is_read: bool = False,
        reference_id: str | None = None,
    ) -> Notification | None:
        """Stage a notification; returns ``None`` when it could not be written.

        The row is flushed inside a savepoint so a failure leaves the
        surrounding transaction usable. The caller owns the commit.
        """

        notification = Notification(
            recipient_id=recipient_id,
            business_id=business_id,
            type=notification_type.value,
            title=title,
            message=message,
            data=data or {},
            requires_action=requires_action,
            action_taken=action_taken,
            is_read=is_read,
            reference_id=reference_id,
        )
        try:
            async with self._db.begin_nested():
                self._db.add(notification)
        except SQLAlchemyError:
            logger.exception(
                "Failed to create notification",
                recipient_id=str(recipient_id),
                notification_type=notification_type.value,
            )
            return None

        logger.debug(
            "Created notification",
            notification_id=str(notification.id),
            recipient_id=str(recipient_id),
            notification_type=notification_type.value,
        )
        return notification

    async def mark_actioned_for_reference(self, reference_id: str) -> int:
        """Flag every action-requiring notification about ``reference_id`` as handled."""

        stmt = (
            update(Notification)
            .where(Notification.reference_id == reference_id, Notification.action_taken.is_(False))
            .values(action_taken=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        return result.rowcount or 0

    async def list_notifications(
        self,
        recipient_id: UUID,
        *,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def mark_as_read(self, notification_id: UUID) -> Notification | None:
        notification = await self._db.get(Notification, notification_id)
        if notification is None:
            return None
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await self._db.commit()
            logger.debug("Marked notification as read", notification_id=str(notification_id))
        return notification


__all__ = ["CustomerNotificationService"]
