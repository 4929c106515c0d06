"""Comment store: threaded comments, reactions, and the edit window with history."""

import asyncio
import math
import weakref
from datetime import timedelta
from typing import Iterable, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.clock import Clock, SystemClock, as_utc
from taskflow.core.config import settings
from taskflow.core.events import BaseEvent, CommentCreated, CommentMentioned
from taskflow.core.exceptions import (
    EditWindowExpired,
    NotAuthor,
    RecordNotFound,
    RosterUnavailable,
    ValidationError,
)
from taskflow.events import CommentEventBus
from taskflow.models import Comment, CommentReaction, CommentVersion
from taskflow.schemas.comments import (
    CommentThreadNode,
    CurrentVersion,
    EditStatus,
    HistoricalVersion,
    ReactionGroup,
    ThreadStats,
    TopicGroup,
    VersionView,
)
from taskflow.services.mentions import MentionParser

logger = structlog.get_logger(__name__)

DEFAULT_TOPIC = "General"


class EditGuard:
    """
    Process-wide coordination of comment edits.

    Edits of one comment run one at a time, and once any check has found a
    comment's window closed, that comment stays closed for the process.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._closed: set[int] = set()

    def lock(self, comment_id: int) -> asyncio.Lock:
        lock = self._locks.get(comment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[comment_id] = lock
        return lock

    def is_closed(self, comment_id: int) -> bool:
        return comment_id in self._closed

    def close(self, comment_id: int) -> None:
        self._closed.add(comment_id)


class CommentStore:
    """Owns comments, their reactions and their edit history."""

    def __init__(
        self,
        db: AsyncSession,
        mention_parser: MentionParser,
        event_bus: Optional[CommentEventBus] = None,
        clock: Optional[Clock] = None,
        edit_guard: Optional[EditGuard] = None,
        edit_window_seconds: Optional[int] = None,
    ):
        """
        Initialize the comment store.

        Args:
            db: Async database session.
            mention_parser: Parser used to resolve @mentions at write time.
            event_bus: Bus receiving CommentCreated/CommentMentioned events.
            clock: Time source for timestamps and window checks.
            edit_guard: Shared edit coordination; one per process.
            edit_window_seconds: Edit window length. Defaults to settings.
        """
        self.db = db
        self.mention_parser = mention_parser
        self.roster = mention_parser.roster
        self.event_bus = event_bus
        self.clock = clock or SystemClock()
        self.edit_guard = edit_guard or EditGuard()
        self.edit_window_seconds = (
            settings.comment_edit_window_seconds if edit_window_seconds is None else edit_window_seconds
        )

    @property
    def edit_window(self) -> timedelta:
        return timedelta(seconds=self.edit_window_seconds)

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(
        self,
        thread_id: int,
        author_id: int,
        content: str,
        parent_id: Optional[int] = None,
        mention_ids: Optional[Iterable[int]] = None,
        topic: Optional[str] = None,
    ) -> Comment:
        """
        Post a comment in a thread.

        Args:
            thread_id: Thread to post in.
            author_id: Roster ID of the author.
            content: Comment text.
            parent_id: Optional comment being replied to (same thread).
            mention_ids: Members picked explicitly in the mention dropdown.
            topic: Optional topic label grouping the comment's thread.

        Returns:
            Created Comment.

        Raises:
            ValidationError: Empty/oversized content, unknown explicit mention,
                or a parent from another thread.
            RecordNotFound: If the parent comment does not exist.
        """
        content = self._validate_content(content)
        topic = self._validate_topic(topic)

        if parent_id is not None:
            parent = await self._get_comment(parent_id)
            if parent.thread_id != thread_id:
                raise ValidationError("Parent comment belongs to a different thread")

        mentions = await self.mention_parser.parse(content)
        if mention_ids:
            mentions |= await self._validate_explicit_mentions(mention_ids)

        participants = await self._thread_participants(thread_id)

        now = self.clock.now()
        comment = Comment(
            thread_id=thread_id,
            parent_id=parent_id,
            author_id=author_id,
            content=content,
            topic=topic,
            mentions=sorted(mentions),
            is_pinned=False,
            is_resolved=False,
            created_at=now,
            updated_at=now,
            versions=[],
            reactions=[],
        )
        self.db.add(comment)
        await self._commit("create")

        logger.info(
            "comment_created",
            comment_id=comment.id,
            thread_id=thread_id,
            author_id=author_id,
            mention_count=len(mentions),
            is_reply=bool(participants),
        )

        await self._publish(
            CommentCreated(
                comment_id=comment.id,
                thread_id=thread_id,
                parent_id=parent_id,
                author_id=author_id,
                content=content,
                mentions=sorted(mentions),
                thread_participants=participants,
            )
        )
        return comment

    async def edit(self, comment_id: int, editor_id: int, new_content: str) -> Comment:
        """
        Replace a comment's content while its edit window is open.

        The pre-edit text is appended to the history. Members mentioned for
        the first time trigger a CommentMentioned event; mentions removed by
        the edit are not retracted.

        Raises:
            RecordNotFound: Unknown or removed comment.
            NotAuthor: Editor is not the author.
            EditWindowExpired: Window has closed.
            ValidationError: Invalid new content.
        """
        async with self.edit_guard.lock(comment_id):
            comment = await self._get_comment(comment_id)

            if comment.author_id != editor_id:
                raise NotAuthor()

            now = self.clock.now()
            if not self._window_open(comment, now):
                logger.info("comment_edit_rejected", comment_id=comment_id, reason="window_expired")
                raise EditWindowExpired(self.edit_window_seconds)

            content = self._validate_content(new_content)
            if content == comment.content:
                return comment

            previous_mentions = set(comment.mentions or [])
            current_mentions = await self.mention_parser.parse(content)

            comment.versions.append(
                CommentVersion(content=comment.content, edited_at=now, edited_by=editor_id)
            )
            comment.content = content
            comment.updated_at = now
            comment.mentions = sorted(current_mentions)
            await self._commit("edit")

        new_mentions = sorted(current_mentions - previous_mentions)
        logger.info(
            "comment_edited",
            comment_id=comment_id,
            version_count=len(comment.versions),
            new_mention_count=len(new_mentions),
        )

        if new_mentions:
            await self._publish(
                CommentMentioned(
                    comment_id=comment.id,
                    thread_id=comment.thread_id,
                    author_id=comment.author_id,
                    content=content,
                    new_mentions=new_mentions,
                )
            )
        return comment

    async def add_reaction(
        self,
        comment_id: int,
        user_id: int,
        user_name: Optional[str],
        emoji: str,
    ) -> Comment:
        """
        Toggle a reaction: adds it, or removes it if this user already
        reacted with this emoji. Works on locked comments too.
        """
        emoji = (emoji or "").strip()
        if not emoji:
            raise ValidationError("Reaction emoji is required")

        comment = await self._get_comment(comment_id)
        existing = _find_reaction(comment, user_id, emoji)
        if existing is not None:
            comment.reactions.remove(existing)
            action = "removed"
        else:
            name = (user_name or "").strip() or await self.roster.display_name(user_id)
            comment.reactions.append(
                CommentReaction(
                    user_id=user_id,
                    user_name=name,
                    emoji=emoji,
                    created_at=self.clock.now(),
                )
            )
            action = "added"

        try:
            await self.db.commit()
        except IntegrityError:
            # Another session stored the same (user, emoji) first; its write wins.
            await self.db.rollback()
            logger.warning("reaction_toggle_conflict", comment_id=comment_id, user_id=user_id, emoji=emoji)
            return await self._get_comment(comment_id, reload=True)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.info("reaction_toggled", comment_id=comment_id, user_id=user_id, emoji=emoji, action=action)
        return comment

    async def remove_reaction(self, comment_id: int, user_id: int, emoji: str) -> Comment:
        """Remove a reaction if present; otherwise leave the comment as is."""
        comment = await self._get_comment(comment_id)
        existing = _find_reaction(comment, user_id, (emoji or "").strip())
        if existing is None:
            return comment
        comment.reactions.remove(existing)
        await self._commit("remove_reaction")
        return comment

    async def toggle_pin(self, comment_id: int) -> Comment:
        comment = await self._get_comment(comment_id)
        comment.is_pinned = not comment.is_pinned
        await self._commit("toggle_pin")
        return comment

    async def toggle_resolve(self, comment_id: int) -> Comment:
        comment = await self._get_comment(comment_id)
        comment.is_resolved = not comment.is_resolved
        await self._commit("toggle_resolve")
        return comment

    async def mark_removed(self, comment_id: int) -> Comment:
        """Soft-delete a comment. Removed comments accept no further changes."""
        comment = await self._get_comment(comment_id, include_removed=True)
        if comment.removed_at is None:
            comment.removed_at = self.clock.now()
            await self._commit("mark_removed")
            logger.info("comment_removed", comment_id=comment_id)
        return comment

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, comment_id: int, include_removed: bool = False) -> Comment:
        return await self._get_comment(comment_id, include_removed=include_removed)

    async def list_thread(self, thread_id: int, include_removed: bool = False) -> List[Comment]:
        """Comments of a thread, oldest first."""
        query = select(Comment).where(Comment.thread_id == thread_id)
        if not include_removed:
            query = query.where(Comment.removed_at.is_(None))
        result = await self.db.execute(query.order_by(Comment.created_at, Comment.id))
        return list(result.scalars().all())

    async def search(self, thread_id: int, query: str) -> List[Comment]:
        """Thread comments whose text or author name contains ``query``."""
        comments = await self.list_thread(thread_id)
        needle = (query or "").strip().casefold()
        if not needle:
            return comments

        names = {m.id: m.display_name.casefold() for m in await self.roster.members()}
        return [
            c
            for c in comments
            if needle in c.content.casefold() or needle in names.get(c.author_id, "")
        ]

    async def list_topics(self, thread_id: int) -> List[str]:
        """Distinct topics used in a thread, sorted."""
        result = await self.db.execute(
            select(Comment.topic)
            .where(
                Comment.thread_id == thread_id,
                Comment.topic.is_not(None),
                Comment.removed_at.is_(None),
            )
            .distinct()
        )
        return sorted(row[0] for row in result.all())

    async def thread_stats(self, thread_id: int) -> ThreadStats:
        comments = await self.list_thread(thread_id)
        return ThreadStats(
            total=len(comments),
            pinned=sum(1 for c in comments if c.is_pinned),
            resolved=sum(1 for c in comments if c.is_resolved),
            root_comments=sum(1 for c in comments if c.parent_id is None),
        )

    async def get_history(self, comment_id: int) -> List[VersionView]:
        """
        Edit history, newest first.

        The head is the live content as a CurrentVersion; the rest are stored
        snapshots, numbered from 1 (the original text).
        """
        comment = await self._get_comment(comment_id, include_removed=True)

        history: List[VersionView] = [
            HistoricalVersion(
                id=version.id,
                version=index,
                content=version.content,
                edited_at=version.edited_at,
                edited_by=version.edited_by,
            )
            for index, version in enumerate(comment.versions, start=1)
        ]
        history.reverse()

        last_editor = comment.versions[-1].edited_by if comment.versions else comment.author_id
        current = CurrentVersion(
            content=comment.content,
            edited_at=comment.updated_at,
            edited_by=last_editor,
        )
        return [current, *history]

    def edit_status(self, comment: Comment, viewer_id: int) -> EditStatus:
        """Whether ``viewer_id`` may edit ``comment`` right now, and for how long."""
        if comment.is_removed:
            return EditStatus(can_edit=False, reason="Comment was removed")
        if comment.author_id != viewer_id:
            return EditStatus(can_edit=False, reason="Not your comment")

        now = self.clock.now()
        if not self._window_open(comment, now):
            return EditStatus(can_edit=False, reason="Edit window has expired")

        remaining = self.edit_window - (now - as_utc(comment.created_at))
        return EditStatus(can_edit=True, remaining_seconds=math.ceil(remaining.total_seconds()))

    # =========================================================================
    # Helper Methods
    # =========================================================================

    async def _get_comment(
        self,
        comment_id: int,
        include_removed: bool = False,
        reload: bool = False,
    ) -> Comment:
        query = select(Comment).where(Comment.id == comment_id)
        if reload:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        comment = result.scalar_one_or_none()
        if comment is None or (comment.is_removed and not include_removed):
            raise RecordNotFound("Comment", comment_id)
        return comment

    async def _thread_participants(self, thread_id: int) -> List[int]:
        """Distinct authors already in the thread, in order of first comment."""
        first_comment = func.min(Comment.id)
        result = await self.db.execute(
            select(Comment.author_id, first_comment)
            .where(Comment.thread_id == thread_id, Comment.removed_at.is_(None))
            .group_by(Comment.author_id)
            .order_by(first_comment)
        )
        return [row[0] for row in result.all()]

    async def _validate_explicit_mentions(self, mention_ids: Iterable[int]) -> set[int]:
        """
        Check picked mentions against the roster.

        When the roster cannot be read the IDs cannot be verified; they are
        dropped and the comment is still stored.
        """
        requested = set(mention_ids)
        try:
            roster_ids = {m.id for m in await self.roster.source.list_members()}
        except RosterUnavailable as e:
            logger.warning(
                "explicit_mentions_dropped",
                mention_ids=sorted(requested),
                reason="roster_unavailable",
                error=e.detail,
            )
            return set()

        unknown = sorted(requested - roster_ids)
        if unknown:
            raise ValidationError(f"Unknown mentioned member(s): {', '.join(map(str, unknown))}")
        return requested

    def _validate_topic(self, topic: Optional[str]) -> Optional[str]:
        topic = (topic or "").strip()
        if not topic:
            return None
        if len(topic) > settings.comment_topic_max_length:
            raise ValidationError(
                f"Comment topic must be at most {settings.comment_topic_max_length} characters long"
            )
        return topic

    def _validate_content(self, content: Optional[str]) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment content cannot be empty")
        if len(content) < settings.comment_min_length:
            raise ValidationError(
                f"Comment content must be at least {settings.comment_min_length} characters long"
            )
        if len(content) > settings.comment_max_length:
            raise ValidationError(
                f"Comment content must be at most {settings.comment_max_length} characters long"
            )
        return content

    def _window_open(self, comment: Comment, now) -> bool:
        if self.edit_guard.is_closed(comment.id):
            return False
        if now - as_utc(comment.created_at) > self.edit_window:
            self.edit_guard.close(comment.id)
            return False
        return True

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error("comment_write_failed", operation=operation, exc_info=True)
            raise

    async def _publish(self, event: BaseEvent) -> None:
        if self.event_bus is None:
            return
        try:
            await self.event_bus.publish(event)
        except Exception:
            # The comment is already stored; delivery problems stay with the bus.
            logger.exception("comment_event_publish_failed", event_type=type(event).__name__)


def _find_reaction(comment: Comment, user_id: int, emoji: str) -> Optional[CommentReaction]:
    for reaction in comment.reactions:
        if reaction.user_id == user_id and reaction.emoji == emoji:
            return reaction
    return None


def reaction_summary(comment: Comment) -> List[ReactionGroup]:
    """Group a comment's reactions by emoji, in order of first use."""
    groups: dict[str, ReactionGroup] = {}
    for reaction in comment.reactions:
        group = groups.get(reaction.emoji)
        if group is None:
            group = groups[reaction.emoji] = ReactionGroup(
                emoji=reaction.emoji, count=0, user_ids=[], user_names=[]
            )
        group.count += 1
        group.user_ids.append(reaction.user_id)
        group.user_names.append(reaction.user_name)
    return list(groups.values())


def topic_label(topic: Optional[str]) -> str:
    return topic or DEFAULT_TOPIC


def build_comment_threads(comments: Iterable[Comment]) -> List[CommentThreadNode]:
    """
    Nest replies under their parents.

    Roots are grouped by topic (alphabetically, roots without a topic under
    "General"), then ordered pinned first, then oldest first; replies oldest
    first. Replies live under their parent whatever their own topic.
    Replies whose parent is missing from ``comments`` are shown as roots.
    """
    ordered = sorted(comments, key=lambda c: (as_utc(c.created_at), c.id))
    nodes = {c.id: CommentThreadNode.model_validate(c) for c in ordered}

    roots: List[CommentThreadNode] = []
    for comment in ordered:
        node = nodes[comment.id]
        if comment.parent_id is not None and comment.parent_id in nodes:
            nodes[comment.parent_id].replies.append(node)
        else:
            roots.append(node)

    def count_replies(node: CommentThreadNode) -> int:
        node.reply_count = sum(1 + count_replies(reply) for reply in node.replies)
        return node.reply_count

    for root in roots:
        count_replies(root)

    roots.sort(key=lambda n: (topic_label(n.topic), not n.is_pinned))
    return roots


def group_threads_by_topic(threads: Iterable[CommentThreadNode]) -> List[TopicGroup]:
    """Topic headers for root threads as ordered by build_comment_threads."""
    groups: dict[str, TopicGroup] = {}
    for thread in threads:
        label = topic_label(thread.topic)
        group = groups.get(label)
        if group is None:
            group = groups[label] = TopicGroup(topic=label, comment_count=0, comment_ids=[])
        group.comment_count += 1
        group.comment_ids.append(thread.id)
    return sorted(groups.values(), key=lambda g: g.topic)
