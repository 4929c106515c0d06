"""Tests for inbox listing, read state and the unread badge."""
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from taskflow.models import NotificationType
from tests.conftest import ALICE, BOB


async def _seed(comment_engine, clock, count, recipient_id=ALICE.id):
    created = []
    for i in range(count):
        created.append(
            await comment_engine.dispatcher.notify(
                recipient_id,
                NotificationType.REMINDER,
                f"Reminder {i}",
            )
        )
        clock.advance(seconds=1)
    return created


class TestListing:
    """Tests for NotificationInbox.list."""

    @pytest.mark.asyncio
    async def test_newest_first(self, comment_engine, inbox, clock):
        created = await _seed(comment_engine, clock, 3)

        listed = await inbox.list(ALICE.id)

        assert [n.id for n in listed] == [n.id for n in reversed(created)]

    @pytest.mark.asyncio
    async def test_filters_and_paging(self, comment_engine, inbox, clock):
        await _seed(comment_engine, clock, 4)
        await comment_engine.dispatcher.notify(ALICE.id, NotificationType.TASK_DUE, "Due tomorrow")

        due = await inbox.list(ALICE.id, notification_type=NotificationType.TASK_DUE.value)
        page = await inbox.list(ALICE.id, limit=2, offset=1)

        assert [n.message for n in due] == ["Due tomorrow"]
        assert [n.message for n in page] == ["Reminder 3", "Reminder 2"]

    @pytest.mark.asyncio
    async def test_only_own_notifications(self, comment_engine, inbox, clock):
        await _seed(comment_engine, clock, 2, recipient_id=BOB.id)

        assert await inbox.list(ALICE.id) == []

    @pytest.mark.asyncio
    async def test_list_with_counts(self, comment_engine, inbox, clock):
        created = await _seed(comment_engine, clock, 3)
        await inbox.mark_read(created[0].id)

        notifications, total, unread = await inbox.list_with_counts(ALICE.id, limit=1)

        assert len(notifications) == 1
        assert total == 3
        assert unread == 2

    @pytest.mark.asyncio
    async def test_thread_filter(self, comment_engine, inbox, clock):
        await comment_engine.dispatcher.notify(
            ALICE.id, NotificationType.TASK_DUE, "Task 1 due", thread_id=1
        )
        clock.advance(seconds=1)
        await comment_engine.dispatcher.notify(
            ALICE.id, NotificationType.TASK_DUE, "Task 2 due", thread_id=2
        )
        clock.advance(seconds=1)
        await comment_engine.dispatcher.notify(
            ALICE.id, NotificationType.REMINDER, "Task 1 reminder", thread_id=1
        )

        listed = await inbox.list(ALICE.id, thread_id=1)
        notifications, total, unread = await inbox.list_with_counts(ALICE.id, thread_id=2)

        assert [n.message for n in listed] == ["Task 1 reminder", "Task 1 due"]
        assert [n.message for n in notifications] == ["Task 2 due"]
        assert total == 1
        assert unread == 3


class TestReadState:
    """Tests for mark_read / mark_all_read and the unread count."""

    @pytest.mark.asyncio
    async def test_unread_count_matches_unread_list(self, comment_engine, inbox, clock):
        created = await _seed(comment_engine, clock, 5)

        for notification_id in [created[1].id, created[3].id, created[1].id]:
            await inbox.mark_read(notification_id)
            unread = await inbox.list(ALICE.id, unread_only=True)
            assert await inbox.unread_count(ALICE.id) == len(unread)

        assert await inbox.unread_count(ALICE.id) == 3

    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self, comment_engine, inbox, clock):
        (notification,) = await _seed(comment_engine, clock, 1)
        clock.advance(minutes=5)

        assert await inbox.mark_read(notification.id) is True
        first_read_at = (await inbox.list(ALICE.id))[0].read_at

        clock.advance(minutes=5)
        assert await inbox.mark_read(notification.id) is False

        listed = await inbox.list(ALICE.id)
        assert listed[0].is_read is True
        assert listed[0].read_at == first_read_at

    @pytest.mark.asyncio
    async def test_mark_read_unknown_id_is_a_no_op(self, comment_engine, inbox, clock):
        await _seed(comment_engine, clock, 2)

        assert await inbox.mark_read(99999) is False
        assert await inbox.unread_count(ALICE.id) == 2

    @pytest.mark.asyncio
    async def test_mark_read_ignores_other_recipients(self, comment_engine, inbox, clock):
        (notification,) = await _seed(comment_engine, clock, 1)

        assert await inbox.mark_read(notification.id, recipient_id=BOB.id) is False
        assert await inbox.unread_count(ALICE.id) == 1

    @pytest.mark.asyncio
    async def test_mark_all_read(self, comment_engine, inbox, clock):
        created = await _seed(comment_engine, clock, 4)
        await _seed(comment_engine, clock, 2, recipient_id=BOB.id)
        await inbox.mark_read(created[0].id)

        marked = await inbox.mark_all_read(ALICE.id)

        assert marked == 3
        assert await inbox.unread_count(ALICE.id) == 0
        assert await inbox.unread_count(BOB.id) == 2
        assert await inbox.mark_all_read(ALICE.id) == 0

    @pytest.mark.asyncio
    async def test_read_state_is_monotonic(self, comment_engine, inbox, clock):
        created = await _seed(comment_engine, clock, 3)
        await inbox.mark_all_read(ALICE.id)

        for notification in created:
            await inbox.mark_read(notification.id)

        assert all(n.is_read for n in await inbox.list(ALICE.id))

    @pytest.mark.asyncio
    async def test_failed_commit_rolls_back(self, comment_engine, inbox, clock):
        created = await _seed(comment_engine, clock, 2)
        failure = OperationalError("COMMIT", {}, Exception("disk I/O error"))

        with patch.object(inbox.db, "commit", AsyncMock(side_effect=failure)):
            with pytest.raises(OperationalError):
                await inbox.mark_read(created[0].id)
            with pytest.raises(OperationalError):
                await inbox.mark_all_read(ALICE.id)

        assert await inbox.unread_count(ALICE.id) == 2


class TestBadge:
    """Tests for the unread badge label."""

    @pytest.mark.asyncio
    async def test_empty_badge(self, inbox):
        badge = await inbox.badge(ALICE.id)

        assert badge.unread_count == 0
        assert badge.label == "0"

    @pytest.mark.asyncio
    async def test_badge_caps_label(self, comment_engine, inbox, clock):
        await _seed(comment_engine, clock, 100)

        badge = await inbox.badge(ALICE.id)

        assert badge.unread_count == 100
        assert badge.label == "99+"

    @pytest.mark.asyncio
    async def test_badge_at_cap_is_exact(self, comment_engine, inbox, clock):
        await _seed(comment_engine, clock, 99)

        assert (await inbox.badge(ALICE.id)).label == "99"
