"""Notification schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class NotificationType(str, Enum):
    """Notification type enumeration."""

    APPOINTMENT = "appointment"
    SYMPTOM_CHECK = "symptom_check"
    SYSTEM = "system"


class NotificationRecord(BaseModel):
    """Schema for a stored notification."""

    id: UUID
    user_id: UUID
    notification_type: NotificationType
    title: str
    message: str
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Schema for paginated notification list."""

    success: bool = True
    total: int
    unread: int
    page: int
    page_size: int
    items: list[NotificationRecord]


class MarkReadResponse(BaseModel):
    """Schema for mark-as-read responses."""

    success: bool = True
    updated: int
