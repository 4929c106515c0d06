"""Wiring of the comment engine components."""

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.clock import Clock, SystemClock
from taskflow.events import CommentEventBus
from taskflow.services.comments import CommentStore, EditGuard
from taskflow.services.mentions import MentionParser
from taskflow.services.notification_dispatcher import NotificationDispatcher
from taskflow.services.notification_inbox import NotificationInbox
from taskflow.services.roster import DatabaseRosterSource, RosterResolver, RosterSource


class CommentEngine:
    """
    Long-lived engine state shared by all requests: roster, event bus,
    dispatcher subscription and edit coordination. Per-request services are
    built on top of a request's database session.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        roster_source: Optional[RosterSource] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[CommentEventBus] = None,
        edit_window_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.roster = RosterResolver(roster_source or DatabaseRosterSource(session_factory))
        self.mention_parser = MentionParser(self.roster)
        self.event_bus = event_bus or CommentEventBus()
        self.edit_guard = EditGuard()
        self.edit_window_seconds = edit_window_seconds

        self.dispatcher = NotificationDispatcher(session_factory, self.roster, clock=self.clock)
        self.dispatcher.register(self.event_bus)

    def comment_store(self, db: AsyncSession) -> CommentStore:
        return CommentStore(
            db,
            self.mention_parser,
            event_bus=self.event_bus,
            clock=self.clock,
            edit_guard=self.edit_guard,
            edit_window_seconds=self.edit_window_seconds,
        )

    def inbox(self, db: AsyncSession) -> NotificationInbox:
        return NotificationInbox(db, clock=self.clock)

    async def shutdown(self) -> None:
        """Let in-flight notification fanout finish."""
        await self.event_bus.drain()
