"""Notification service for recording in-portal notifications."""

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_portal.core.exceptions import NotFoundException
from clinic_portal.models.notifications import notifications
from clinic_portal.schemas.notifications import (
    NotificationListResponse,
    NotificationRecord,
    NotificationType,
)

logger = structlog.get_logger(__name__)


class NotificationService:
    """Service for writing and reading user notifications."""

    @staticmethod
    async def record(
        db: AsyncSession,
        user_id: UUID,
        title: str,
        message: str,
        created_at: datetime,
        notification_type: NotificationType = NotificationType.APPOINTMENT,
    ) -> UUID:
        """
        Queue a notification row in the caller's transaction.

        The caller commits; delivery and display happen elsewhere.

        Args:
            db: Database session
            user_id: Recipient user ID
            title: Notification title
            message: Notification body
            created_at: Clinic wall-clock timestamp
            notification_type: Notification category

        Returns:
            ID of the new notification
        """
        result = await db.execute(
            insert(notifications)
            .values(
                user_id=user_id,
                notification_type=notification_type.value,
                title=title,
                message=message,
                is_read=False,
                created_at=created_at,
            )
            .returning(notifications.c.id)
        )
        notification_id = result.scalar_one()
        logger.debug(
            "notification_recorded",
            user_id=str(user_id),
            notification_type=notification_type.value,
        )
        return notification_id

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: UUID,
        unread_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> NotificationListResponse:
        """
        List a user's notifications, newest first.

        Args:
            db: Database session
            user_id: Owner of the notifications
            unread_only: Only return unread notifications
            page: Page number
            page_size: Items per page

        Returns:
            Paginated notifications with unread count
        """
        conditions = [notifications.c.user_id == user_id]
        if unread_only:
            conditions.append(notifications.c.is_read.is_(False))

        total = (
            await db.execute(
                select(func.count()).select_from(notifications).where(and_(*conditions))
            )
        ).scalar() or 0

        unread = (
            await db.execute(
                select(func.count())
                .select_from(notifications)
                .where(
                    notifications.c.user_id == user_id,
                    notifications.c.is_read.is_(False),
                )
            )
        ).scalar() or 0

        result = await db.execute(
            select(notifications)
            .where(and_(*conditions))
            .order_by(notifications.c.created_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        items = [NotificationRecord.model_validate(dict(row)) for row in result.mappings().all()]

        return NotificationListResponse(
            total=total,
            unread=unread,
            page=page,
            page_size=page_size,
            items=items,
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        user_id: UUID,
        notification_id: UUID,
        now: datetime,
    ) -> int:
        """
        Mark one of the user's notifications as read.

        Raises:
            NotFoundException: If the notification does not belong to the user
        """
        exists = await db.execute(
            select(notifications.c.id).where(
                notifications.c.id == notification_id,
                notifications.c.user_id == user_id,
            )
        )
        if exists.first() is None:
            raise NotFoundException("Notification not found")

        result = await db.execute(
            update(notifications)
            .where(
                notifications.c.id == notification_id,
                notifications.c.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: UUID, now: datetime) -> int:
        """Mark every unread notification of the user as read."""
        result = await db.execute(
            update(notifications)
            .where(
                notifications.c.user_id == user_id,
                notifications.c.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
        )
        await db.commit()
        return result.rowcount
