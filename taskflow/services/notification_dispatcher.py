"""
Notification fanout for comment events.

Turns CommentCreated/CommentMentioned events into one Notification per
recipient. Mentions take precedence over replies for the same recipient, the
author is never notified of their own comment, and a repeated delivery of an
event does not create duplicates.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.clock import Clock, SystemClock
from taskflow.core.config import settings
from taskflow.core.events import CommentCreated, CommentMentioned
from taskflow.events import CommentEventBus
from taskflow.models import Notification, NotificationType
from taskflow.services.roster import RosterResolver

logger = structlog.get_logger(__name__)

TITLES = {
    NotificationType.COMMENT_MENTION: "You were mentioned in a comment",
    NotificationType.COMMENT_REPLY: "Someone replied in your thread",
    NotificationType.TASK_ASSIGNED: "You have been assigned to a task",
    NotificationType.TASK_COMPLETED: "Task has been completed",
    NotificationType.TASK_DUE: "Task is due soon",
    NotificationType.TASK_OVERDUE: "Task is overdue",
    NotificationType.TASK_UPDATED: "Task has been updated",
    NotificationType.REMINDER: "Task reminder",
}

Recipient = Tuple[int, NotificationType]


def plan_recipients(
    author_id: int,
    mentions: List[int],
    thread_participants: Optional[List[int]] = None,
    is_reply: bool = False,
) -> List[Recipient]:
    """
    Decide who is notified and how.

    Args:
        author_id: Author of the triggering comment (never notified).
        mentions: Resolved member IDs mentioned by the comment.
        thread_participants: Earlier authors in the thread.
        is_reply: Whether the comment replies into an existing thread.

    Returns:
        (recipient_id, type) pairs, mentions first, one entry per recipient.
    """
    plan: Dict[int, NotificationType] = {}
    for member_id in mentions:
        if member_id != author_id:
            plan.setdefault(member_id, NotificationType.COMMENT_MENTION)

    if is_reply:
        for member_id in thread_participants or []:
            if member_id != author_id:
                plan.setdefault(member_id, NotificationType.COMMENT_REPLY)

    return list(plan.items())


class NotificationDispatcher:
    """Creates Notification records. The only writer of notifications."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        roster: RosterResolver,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            session_factory: Callable returning a new AsyncSession. Each event
                is written in its own session so a failed fanout cannot touch
                the comment that triggered it.
            roster: Used to name the author in notification messages.
            clock: Time source for created_at.
        """
        self._session_factory = session_factory
        self.roster = roster
        self.clock = clock or SystemClock()

    def register(self, event_bus: CommentEventBus) -> None:
        """Subscribe to comment events."""
        event_bus.subscribe(CommentCreated, self.handle_comment_created)
        event_bus.subscribe(CommentMentioned, self.handle_comment_mentioned)

    async def handle_comment_created(self, event: CommentCreated) -> List[Notification]:
        plan = plan_recipients(
            author_id=event.author_id,
            mentions=event.mentions,
            thread_participants=event.thread_participants,
            is_reply=event.is_reply,
        )
        return await self._deliver(
            plan,
            comment_id=event.comment_id,
            thread_id=event.thread_id,
            author_id=event.author_id,
            content=event.content,
        )

    async def handle_comment_mentioned(self, event: CommentMentioned) -> List[Notification]:
        plan = plan_recipients(author_id=event.author_id, mentions=event.new_mentions)
        return await self._deliver(
            plan,
            comment_id=event.comment_id,
            thread_id=event.thread_id,
            author_id=event.author_id,
            content=event.content,
        )

    async def notify(
        self,
        recipient_id: int,
        notification_type: NotificationType,
        message: str,
        title: Optional[str] = None,
        thread_id: Optional[int] = None,
        actor_id: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> Notification:
        """
        Create a single notification on behalf of another part of the product
        (task assignment, due dates, reminders).
        """
        notification = Notification(
            recipient_id=recipient_id,
            notification_type=NotificationType(notification_type).value,
            title=title or TITLES.get(NotificationType(notification_type), "Notification"),
            message=message,
            thread_id=thread_id,
            actor_id=actor_id,
            metadata_=metadata,
            is_read=False,
            created_at=self.clock.now(),
        )
        async with self._session_factory() as session:
            session.add(notification)
            try:
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                raise

        logger.info(
            "notification_dispatched",
            notification_id=notification.id,
            recipient_id=recipient_id,
            notification_type=notification.notification_type,
        )
        return notification

    async def _deliver(
        self,
        plan: List[Recipient],
        comment_id: int,
        thread_id: int,
        author_id: int,
        content: str,
    ) -> List[Notification]:
        """Write all notifications for one event, or none of them."""
        if not plan:
            return []

        author_name = await self.roster.display_name(author_id)
        preview = _preview(content, settings.notification_preview_length)
        now = self.clock.now()

        async with self._session_factory() as session:
            result = await session.execute(
                select(Notification.recipient_id, Notification.notification_type).where(
                    Notification.source_comment_id == comment_id,
                )
            )
            already_sent = {(row[0], row[1]) for row in result.all()}

            created: List[Notification] = []
            for recipient_id, notification_type in plan:
                if (recipient_id, notification_type.value) in already_sent:
                    logger.debug(
                        "duplicate_notification_suppressed",
                        comment_id=comment_id,
                        recipient_id=recipient_id,
                        notification_type=notification_type.value,
                    )
                    continue

                notification = Notification(
                    recipient_id=recipient_id,
                    notification_type=notification_type.value,
                    title=TITLES[notification_type],
                    message=_message(notification_type, author_name),
                    source_comment_id=comment_id,
                    thread_id=thread_id,
                    actor_id=author_id,
                    metadata_=_metadata(comment_id, thread_id, author_name, preview),
                    is_read=False,
                    created_at=now,
                )
                session.add(notification)
                created.append(notification)

            if not created:
                return []

            try:
                await session.commit()
            except IntegrityError:
                # A concurrent delivery of the same event got there first; the
                # bus retry re-reads what was sent and writes only the rest.
                await session.rollback()
                logger.info("notification_batch_conflict", comment_id=comment_id)
                raise
            except SQLAlchemyError:
                await session.rollback()
                raise

        logger.info(
            "notification_dispatched",
            comment_id=comment_id,
            recipient_ids=[n.recipient_id for n in created],
            count=len(created),
        )
        return created


def _message(notification_type: NotificationType, author_name: str) -> str:
    if notification_type == NotificationType.COMMENT_MENTION:
        return f"{author_name} mentioned you in a comment"
    return f"{author_name} replied to a thread you're part of"


def _preview(content: str, limit: int) -> str:
    if len(content) <= limit:
        return content
    return content[: limit - 3] + "..."


def _metadata(comment_id: int, thread_id: int, author_name: str, preview: str) -> Dict[str, Any]:
    return {
        "comment_id": comment_id,
        "thread_id": thread_id,
        "author_name": author_name,
        "comment_preview": preview,
    }
