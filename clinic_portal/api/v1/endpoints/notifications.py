"""Notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_portal.dependencies import ClockDep, CurrentUser, DatabaseSession
from clinic_portal.schemas.notifications import MarkReadResponse, NotificationListResponse
from clinic_portal.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "/",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List my notifications",
)
async def list_notifications(
    current_user: CurrentUser,
    db: DatabaseSession,
    unread_only: bool = Query(False, description="Only unread notifications"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> NotificationListResponse:
    """
    List the authenticated user's notifications, newest first.

    Args:
        current_user: Authenticated user
        db: Database session
        unread_only: Only return unread notifications
        page: Page number
        page_size: Items per page

    Returns:
        Paginated notifications with unread count
    """
    return await NotificationService.list_for_user(
        db,
        user_id=current_user["id"],
        unread_only=unread_only,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/read-all",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications as read",
)
async def mark_all_notifications_read(
    current_user: CurrentUser,
    db: DatabaseSession,
    clock: ClockDep,
) -> MarkReadResponse:
    """Mark every unread notification of the authenticated user as read."""
    updated = await NotificationService.mark_all_read(db, current_user["id"], clock())
    return MarkReadResponse(updated=updated)


@router.post(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark a notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    clock: ClockDep,
) -> MarkReadResponse:
    """
    Mark one notification as read.

    Raises:
        NotFoundException: If the notification is not the user's
    """
    updated = await NotificationService.mark_read(
        db, current_user["id"], notification_id, clock()
    )
    return MarkReadResponse(updated=updated)
