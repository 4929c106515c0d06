"""Comment schemas: requests, responses and edit-history views."""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Requests
# ============================================================================


class CommentCreate(BaseModel):
    """Request to post a comment in a thread."""

    content: str = Field(..., description="Comment text; @Name mentions are resolved")
    parent_id: Optional[int] = Field(None, description="Comment being replied to")
    mention_ids: Optional[list[int]] = Field(
        None, description="Members picked explicitly from the mention dropdown"
    )
    topic: Optional[str] = Field(None, max_length=100, description="Topic label for the thread")


class CommentUpdate(BaseModel):
    """Request to edit a comment's content."""

    content: str = Field(..., description="New comment text")


class ReactionToggle(BaseModel):
    """Request to toggle an emoji reaction."""

    emoji: str = Field(..., min_length=1, max_length=32)
    user_name: Optional[str] = Field(None, description="Display name of the reacting member")


# ============================================================================
# Responses
# ============================================================================


class ReactionResponse(BaseModel):
    """A single reaction."""

    model_config = ConfigDict(from_attributes=True)

    emoji: str
    user_id: int
    user_name: str
    created_at: datetime


class ReactionGroup(BaseModel):
    """Reactions sharing one emoji."""

    emoji: str
    count: int
    user_ids: list[int]
    user_names: list[str]


class CommentResponse(BaseModel):
    """Response schema for a comment."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    thread_id: int
    parent_id: Optional[int] = None
    author_id: int
    content: str
    topic: Optional[str] = None
    mentions: list[int] = Field(default_factory=list)
    reactions: list[ReactionResponse] = Field(default_factory=list)
    is_pinned: bool = False
    is_resolved: bool = False
    is_edited: bool = False
    is_removed: bool = False
    created_at: datetime
    updated_at: datetime


class CommentThreadNode(CommentResponse):
    """Comment with its nested replies."""

    replies: list["CommentThreadNode"] = Field(default_factory=list)
    reply_count: int = Field(0, description="All replies below this comment, at any depth")


class TopicGroup(BaseModel):
    """Header for the root threads sharing one topic."""

    topic: str
    comment_count: int = Field(..., description="Root threads under this topic")
    comment_ids: list[int]


class CommentListResponse(BaseModel):
    """Threaded comment listing."""

    comments: list[CommentThreadNode]
    topics: list[TopicGroup] = Field(default_factory=list)
    total: int


class EditStatus(BaseModel):
    """Whether a viewer may still edit a comment."""

    can_edit: bool
    reason: Optional[str] = None
    remaining_seconds: int = 0


class ThreadStats(BaseModel):
    """Counts for a thread."""

    total: int
    pinned: int
    resolved: int
    root_comments: int


# ============================================================================
# Edit history
# ============================================================================


class CurrentVersion(BaseModel):
    """The live content of a comment, synthesized at read time."""

    kind: Literal["current"] = "current"
    content: str
    edited_at: datetime = Field(..., description="Last update of the live content")
    edited_by: int


class HistoricalVersion(BaseModel):
    """A stored pre-edit snapshot."""

    model_config = ConfigDict(from_attributes=True)

    kind: Literal["historical"] = "historical"
    id: int
    version: int = Field(..., description="1 for the original text, increasing per edit")
    content: str
    edited_at: datetime = Field(..., description="When the edit replacing this text happened")
    edited_by: int


VersionView = Annotated[Union[CurrentVersion, HistoricalVersion], Field(discriminator="kind")]


class CommentHistoryResponse(BaseModel):
    """Edit history, newest first, headed by the current version."""

    comment_id: int
    versions: list[VersionView]
