"""
Taskflow Database Models
SQLAlchemy ORM models for the comment collaboration engine.
"""
import enum
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class NotificationType(str, enum.Enum):
    """Notification categories. Comment types are produced by this engine."""

    COMMENT_MENTION = "comment_mention"
    COMMENT_REPLY = "comment_reply"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    TASK_DUE = "task_due"
    TASK_OVERDUE = "task_overdue"
    TASK_UPDATED = "task_updated"
    REMINDER = "reminder"


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Member(Base):
    """
    Team roster entry.

    Created and removed by the team-management side of the product; the
    comment engine only reads it.
    """

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Name shown in the UI and matched by @mentions",
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        doc="Member email address",
    )
    avatar_ref: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Reference to the member's avatar image",
    )

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, display_name='{self.display_name}')>"


class Comment(Base):
    """
    A comment in a thread.

    Content may only change within the edit window; every change appends the
    pre-edit text to ``versions``. Reactions stay mutable until removal.
    """

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Thread (task) the comment belongs to",
    )
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("comments.id", ondelete="SET NULL"),
        nullable=True,
        doc="Comment this one replies to",
    )
    author_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Roster ID of the author",
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    topic: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Topic label grouping root comments of a thread",
    )
    mentions: Mapped[List[int]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="Member IDs resolved from the current content",
    )
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    removed_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        doc="Soft-delete marker; removed comments are terminal",
    )

    # Relationships
    versions: Mapped[List["CommentVersion"]] = relationship(
        "CommentVersion",
        back_populates="comment",
        cascade="all, delete-orphan",
        order_by="CommentVersion.id",
        lazy="selectin",
    )
    reactions: Mapped[List["CommentReaction"]] = relationship(
        "CommentReaction",
        back_populates="comment",
        cascade="all, delete-orphan",
        order_by="CommentReaction.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_comments_thread_id", thread_id),
        Index("ix_comments_author_id", author_id),
        Index("ix_comments_created_at", created_at),
        Index("ix_comments_thread_id_topic", thread_id, topic),
    )

    @property
    def is_edited(self) -> bool:
        return bool(self.versions)

    @property
    def is_removed(self) -> bool:
        return self.removed_at is not None

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, thread_id={self.thread_id}, author_id={self.author_id})>"


class CommentVersion(Base):
    """Pre-edit snapshot of a comment's content. Never modified."""

    __tablename__ = "comment_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, doc="Content before the edit")
    edited_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    edited_by: Mapped[int] = mapped_column(Integer, nullable=False)

    comment: Mapped["Comment"] = relationship("Comment", back_populates="versions")

    __table_args__ = (Index("ix_comment_versions_comment_id", comment_id),)


class CommentReaction(Base):
    """One emoji reaction by one member. Unique per (comment, user, emoji)."""

    __tablename__ = "comment_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    comment: Mapped["Comment"] = relationship("Comment", back_populates="reactions")

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", "emoji", name="uq_comment_reaction_user_emoji"),
        Index("ix_comment_reactions_comment_id", comment_id),
    )


class Notification(Base):
    """
    Per-recipient notification record.

    Only ``is_read``/``read_at`` change after creation, and only from unread
    to read.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient_id: Mapped[int] = mapped_column(Integer, nullable=False)
    notification_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="One of NotificationType values",
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    source_comment_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("comments.id", ondelete="SET NULL"),
        nullable=True,
    )
    thread_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actor_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Member whose action triggered the notification",
    )
    metadata_: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "source_comment_id",
            "recipient_id",
            "notification_type",
            name="uq_notification_source_recipient_type",
        ),
        Index("ix_notifications_recipient_read", recipient_id, is_read),
        Index("ix_notifications_created_at", created_at),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, recipient_id={self.recipient_id}, "
            f"type='{self.notification_type}', is_read={self.is_read})>"
        )
