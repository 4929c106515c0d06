"""Tests for the in-process comment event bus."""
import asyncio

import pytest
from pydantic import ValidationError

from taskflow.core.events import CommentCreated, CommentMentioned
from taskflow.events import CommentEventBus


def _created(**overrides) -> CommentCreated:
    data = dict(comment_id=1, thread_id=1, author_id=2, content="hello")
    data.update(overrides)
    return CommentCreated(**data)


class TestEventModels:
    """Tests for event payload models."""

    def test_new_thread_is_not_a_reply(self):
        assert _created().is_reply is False

    def test_prior_participants_make_a_reply(self):
        assert _created(thread_participants=[3]).is_reply is True

    def test_parent_makes_a_reply(self):
        assert _created(parent_id=9).is_reply is True

    def test_events_are_frozen(self):
        event = _created()
        with pytest.raises(ValidationError):
            event.content = "changed"


class TestPublish:
    """Tests for CommentEventBus.publish."""

    @pytest.mark.asyncio
    async def test_delivers_to_handlers_of_the_event_type(self):
        bus = CommentEventBus(max_retries=1, retry_delay_base=0)
        created, mentioned = [], []

        async def on_created(event):
            created.append(event)

        async def on_mentioned(event):
            mentioned.append(event)

        bus.subscribe(CommentCreated, on_created)
        bus.subscribe(CommentMentioned, on_mentioned)

        delivered = await bus.publish(_created())

        assert delivered == 1
        assert len(created) == 1
        assert mentioned == []

    @pytest.mark.asyncio
    async def test_no_subscribers(self):
        bus = CommentEventBus(max_retries=1, retry_delay_base=0)

        assert await bus.publish(_created()) == 0

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        bus = CommentEventBus(max_retries=1, retry_delay_base=0)
        attempts = []

        async def flaky(event):
            attempts.append(event.event_id)
            if len(attempts) == 1:
                raise ConnectionError("temporarily down")

        bus.subscribe(CommentCreated, flaky)

        delivered = await bus.publish(_created())

        assert delivered == 1
        assert len(attempts) == 2
        assert bus.dead_letters == []

    @pytest.mark.asyncio
    async def test_exhausted_retries_go_to_dead_letters(self):
        bus = CommentEventBus(max_retries=2, retry_delay_base=0)

        async def broken(event):
            raise ValueError("bad payload")

        bus.subscribe(CommentCreated, broken)
        event = _created()

        delivered = await bus.publish(event)

        assert delivered == 0
        assert len(bus.dead_letters) == 1
        dead_letter = bus.dead_letters[0]
        assert dead_letter.failure_count == 3
        assert dead_letter.error_message == "bad payload"
        assert dead_letter.error_type == "ValueError"
        assert dead_letter.handler_name.endswith("broken")
        assert dead_letter.original_payload["event_id"] == str(event.event_id)

    @pytest.mark.asyncio
    async def test_one_failing_handler_does_not_block_others(self):
        bus = CommentEventBus(max_retries=0, retry_delay_base=0)
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def healthy(event):
            received.append(event.comment_id)

        bus.subscribe(CommentCreated, broken)
        bus.subscribe(CommentCreated, healthy)

        delivered = await bus.publish(_created(comment_id=5))

        assert delivered == 1
        assert received == [5]
        assert len(bus.dead_letters) == 1

    @pytest.mark.asyncio
    async def test_cancelled_publisher_does_not_cancel_delivery(self):
        bus = CommentEventBus(max_retries=0, retry_delay_base=0)
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def slow(event):
            started.set()
            await release.wait()
            finished.append(event.comment_id)

        bus.subscribe(CommentCreated, slow)

        publisher = asyncio.ensure_future(bus.publish(_created(comment_id=8)))
        await started.wait()
        publisher.cancel()
        with pytest.raises(asyncio.CancelledError):
            await publisher

        release.set()
        await bus.drain()

        assert finished == [8]
        assert bus.dead_letters == []
