"""Read-state and badge counts over a viewer's notifications."""

from typing import List, Optional, Tuple

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.clock import Clock, SystemClock
from taskflow.core.config import settings
from taskflow.models import Notification
from taskflow.schemas.notifications import BadgeResponse

logger = structlog.get_logger(__name__)


class NotificationInbox:
    """
    Notification queries and mark-read operations.

    Never creates or deletes notifications, and never marks one unread.
    """

    def __init__(self, db: AsyncSession, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()

    async def list(
        self,
        recipient_id: int,
        unread_only: bool = False,
        notification_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        thread_id: Optional[int] = None,
    ) -> List[Notification]:
        """
        Notifications for a recipient, newest first.

        Args:
            recipient_id: Viewer whose inbox to read.
            unread_only: Only return unread notifications.
            notification_type: Optional type filter.
            limit: Maximum results (None for all).
            offset: Skip first N results.
            thread_id: Only notifications about this thread (task).
        """
        query = self._base_query(recipient_id, unread_only, notification_type, thread_id)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_with_counts(
        self,
        recipient_id: int,
        unread_only: bool = False,
        notification_type: Optional[str] = None,
        limit: Optional[int] = 50,
        offset: int = 0,
        thread_id: Optional[int] = None,
    ) -> Tuple[List[Notification], int, int]:
        """
        Page of notifications plus totals.

        Returns:
            Tuple of (notifications list, total count, unread count).
        """
        count_query = select(func.count()).select_from(
            self._base_query(recipient_id, unread_only, notification_type, thread_id).subquery()
        )
        total = (await self.db.execute(count_query)).scalar() or 0

        notifications = await self.list(
            recipient_id,
            unread_only=unread_only,
            notification_type=notification_type,
            limit=limit,
            offset=offset,
            thread_id=thread_id,
        )
        unread = await self.unread_count(recipient_id)
        return notifications, total, unread

    async def unread_count(self, recipient_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def badge(self, recipient_id: int) -> BadgeResponse:
        """Unread count with the label shown on the bell."""
        count = await self.unread_count(recipient_id)
        cap = settings.notification_badge_cap
        label = f"{cap}+" if count > cap else str(count)
        return BadgeResponse(unread_count=count, label=label)

    async def mark_read(self, notification_id: int, recipient_id: Optional[int] = None) -> bool:
        """
        Mark one notification read.

        Already-read and unknown notifications are left alone. When
        ``recipient_id`` is given, notifications of other recipients are
        treated as unknown.

        Returns:
            True if this call flipped the notification to read.
        """
        statement = update(Notification).where(
            Notification.id == notification_id,
            Notification.is_read.is_(False),
        )
        if recipient_id is not None:
            statement = statement.where(Notification.recipient_id == recipient_id)

        result = await self._execute_write(
            statement.values(is_read=True, read_at=self.clock.now()).execution_options(
                synchronize_session="fetch"
            ),
            "mark_read",
        )

        changed = result.rowcount > 0
        if changed:
            logger.info("notification_marked_read", notification_id=notification_id)
        return changed

    async def mark_all_read(self, recipient_id: int) -> int:
        """
        Mark every unread notification of a recipient read.

        Returns:
            Number of notifications marked as read.
        """
        result = await self._execute_write(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=self.clock.now())
            .execution_options(synchronize_session="fetch"),
            "mark_all_read",
        )

        logger.info("notifications_marked_read", recipient_id=recipient_id, count=result.rowcount)
        return result.rowcount

    async def _execute_write(self, statement, operation: str):
        try:
            result = await self.db.execute(statement)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error("notification_write_failed", operation=operation, exc_info=True)
            raise
        return result

    def _base_query(
        self,
        recipient_id: int,
        unread_only: bool,
        notification_type: Optional[str],
        thread_id: Optional[int] = None,
    ):
        query = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        if notification_type:
            query = query.where(Notification.notification_type == notification_type)
        if thread_id is not None:
            query = query.where(Notification.thread_id == thread_id)
        return query
