"""
Taskflow Event Models
Pydantic models for comment engine event payloads
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseEvent(BaseModel):
    """Base event model with common fields."""

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4, description="Unique identifier for this event")
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event was created",
    )
    version: str = Field(
        default="1.0",
        description="Event schema version for backward compatibility",
    )


class CommentCreated(BaseEvent):
    """
    Event emitted after a comment has been persisted.

    Consumed by: NotificationDispatcher
    """

    comment_id: int = Field(..., description="ID of the new comment")
    thread_id: int = Field(..., description="Thread the comment belongs to")
    parent_id: Optional[int] = Field(default=None, description="Comment being replied to")
    author_id: int = Field(..., description="Author of the comment")
    content: str = Field(..., description="Comment text at creation time")
    mentions: list[int] = Field(
        default_factory=list,
        description="Resolved member IDs mentioned in the comment",
    )
    thread_participants: list[int] = Field(
        default_factory=list,
        description="Distinct authors of earlier comments in the thread",
    )

    @property
    def is_reply(self) -> bool:
        """A comment is a reply when the thread already had comments."""
        return bool(self.thread_participants) or self.parent_id is not None


class CommentMentioned(BaseEvent):
    """
    Event emitted when an edit introduces mentions absent before the edit.

    Consumed by: NotificationDispatcher
    """

    comment_id: int = Field(..., description="ID of the edited comment")
    thread_id: int = Field(..., description="Thread the comment belongs to")
    author_id: int = Field(..., description="Author of the comment")
    content: str = Field(..., description="Comment text after the edit")
    new_mentions: list[int] = Field(
        default_factory=list,
        description="Member IDs newly mentioned by the edit",
    )


class DeadLetterEvent(BaseEvent):
    """Record of an event whose handler kept failing after retries."""

    original_event_type: str = Field(..., description="Class name of the failed event")
    original_payload: dict = Field(..., description="Original event payload")
    handler_name: str = Field(..., description="Handler that failed")
    error_message: str = Field(..., description="Error message from failed processing")
    error_type: str = Field(..., description="Exception type that caused the failure")
    failure_count: int = Field(..., description="Number of processing attempts")
