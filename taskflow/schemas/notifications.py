"""Notification schemas."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    """Response schema for a notification."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_id: int
    notification_type: str
    title: str
    message: str
    source_comment_id: Optional[int] = None
    thread_id: Optional[int] = None
    actor_id: Optional[int] = None
    metadata: Optional[dict[str, Any]] = Field(None, validation_alias="metadata_")
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Response for listing notifications."""

    notifications: list[NotificationResponse]
    total: int
    unread_count: int


class BadgeResponse(BaseModel):
    """Unread badge for the notification bell."""

    unread_count: int
    label: str = Field(..., description="Text shown on the badge, capped (e.g. '99+')")


class MarkReadResponse(BaseModel):
    """Result of a mark-read request."""

    marked_count: int
    unread_count: int
