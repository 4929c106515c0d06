"""
Taskflow In-Process Event Bus
Typed publish/subscribe between the Comment Store and its consumers, with
retries and a dead letter list.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    stop_after_attempt,
    wait_exponential,
)

from taskflow.core.config import settings
from taskflow.core.events import BaseEvent, DeadLetterEvent

logger = structlog.get_logger(__name__)

EventHandler = Callable[[Any], Awaitable[Any]]


class CommentEventBus:
    """
    Event bus for comment engine events.

    Provides:
    - Subscription by event class
    - Delivery that survives caller cancellation
    - One retry per handler (configurable) before dead-lettering
    """

    def __init__(
        self,
        max_retries: Optional[int] = None,
        retry_delay_base: Optional[float] = None,
    ):
        """
        Initialize the event bus.

        Args:
            max_retries: Retries after the first failed attempt.
                Defaults to settings.event_handler_retries.
            retry_delay_base: Base delay in seconds for exponential backoff.
                Defaults to settings.event_retry_wait_seconds.
        """
        self._handlers: dict[type[BaseEvent], list[EventHandler]] = {}
        self._max_retries = settings.event_handler_retries if max_retries is None else max_retries
        self._retry_delay_base = (
            settings.event_retry_wait_seconds if retry_delay_base is None else retry_delay_base
        )
        self._pending: set[asyncio.Task] = set()
        self.dead_letters: list[DeadLetterEvent] = []

    def subscribe(self, event_type: type[BaseEvent], handler: EventHandler) -> None:
        """Register a handler for an event class."""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(
            "event_handler_subscribed",
            event_type=event_type.__name__,
            handler=_handler_name(handler),
        )

    def handlers_for(self, event: BaseEvent) -> list[EventHandler]:
        return list(self._handlers.get(type(event), []))

    async def publish(self, event: BaseEvent) -> int:
        """
        Deliver an event to every subscribed handler.

        Handlers run as tasks, so a caller that stops waiting does not cut the
        fanout short. Handler failures are contained here and never raised to
        the publisher.

        Args:
            event: Event to publish.

        Returns:
            Number of handlers that processed the event successfully.
        """
        handlers = self.handlers_for(event)
        if not handlers:
            logger.debug("event_without_subscribers", event_type=type(event).__name__)
            return 0

        tasks = [
            asyncio.ensure_future(self.process_with_retry(handler, event))
            for handler in handlers
        ]
        for task in tasks:
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        logger.info(
            "event_published",
            event_type=type(event).__name__,
            event_id=str(event.event_id),
            handler_count=len(tasks),
        )

        results = await asyncio.shield(asyncio.gather(*tasks))
        return sum(1 for ok in results if ok)

    async def process_with_retry(self, handler: EventHandler, event: BaseEvent) -> bool:
        """
        Run one handler with retry and dead letter handling.

        Returns:
            True if the handler succeeded, False if the event was dead-lettered.
        """
        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_retries + 1),
                wait=wait_exponential(multiplier=self._retry_delay_base, max=10),
                reraise=False,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    if attempts > 1:
                        logger.info(
                            "event_handler_retry",
                            event_type=type(event).__name__,
                            handler=_handler_name(handler),
                            attempt=attempts,
                        )
                    await handler(event)
            return True
        except RetryError as exc:
            error = exc.last_attempt.exception()
            self.move_to_dead_letters(handler, event, error, attempts)
            return False

    def move_to_dead_letters(
        self,
        handler: EventHandler,
        event: BaseEvent,
        error: BaseException,
        failure_count: int,
    ) -> DeadLetterEvent:
        """Record an event whose handler exhausted its retries."""
        dead_letter = DeadLetterEvent(
            original_event_type=type(event).__name__,
            original_payload=event.model_dump(mode="json"),
            handler_name=_handler_name(handler),
            error_message=str(error),
            error_type=error.__class__.__name__,
            failure_count=failure_count,
        )
        self.dead_letters.append(dead_letter)

        logger.error(
            "event_moved_to_dead_letters",
            event_type=dead_letter.original_event_type,
            event_id=str(event.event_id),
            handler=dead_letter.handler_name,
            error_type=dead_letter.error_type,
            error=dead_letter.error_message,
            failure_count=failure_count,
        )
        return dead_letter

    async def drain(self) -> None:
        """Wait for in-flight deliveries to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", repr(handler))
