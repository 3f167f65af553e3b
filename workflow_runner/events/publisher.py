"""
Lifecycle event publisher.

A single-writer, multi-subscriber broadcast channel scoped to one run.
Delivery is synchronous: publish() returns only after every current
subscriber, in subscription order, has seen the event.
"""

import logging
from typing import Callable

from workflow_runner.core.models import TaskEvent, TaskEventType

logger = logging.getLogger(__name__)

EventHandler = Callable[[TaskEvent], None]


class EventPublisher:
    """
    Broadcasts task lifecycle events to registered handlers.

    Handlers run inline on the publishing task. A handler that raises is
    logged and skipped; it never affects the run or the other subscribers.
    """

    def __init__(self):
        self._handlers: list[EventHandler] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: EventHandler) -> EventHandler:
        """
        Register an event handler.

        Args:
            handler: Callable receiving each TaskEvent

        Returns:
            The handler, so it can be passed to unsubscribe() later
        """
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: EventHandler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        try:
            self._handlers.remove(handler)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()

    def publish(self, event: TaskEvent) -> None:
        """Deliver an event to all current subscribers, in order."""
        # Snapshot so handlers may (un)subscribe while being notified
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    f"Event handler {handler!r} failed for {event.type.value} of task {event.task_id}"
                )


def format_event(event: TaskEvent) -> str:
    """Render an event as a single console line."""
    line = f"{event.type.value}: {event.task_id}"
    if event.attempt:
        line += f" (attempt {event.attempt})"
    if event.error:
        line += f" - {event.error}"
    return line


class LoggingSubscriber:
    """Writes every event to a logger; failures and retries at WARNING."""

    def __init__(self, log: logging.Logger = logger):
        self._log = log

    def __call__(self, event: TaskEvent) -> None:
        level = logging.INFO
        if event.type in (TaskEventType.FAILED, TaskEventType.RETRY):
            level = logging.WARNING
        self._log.log(level, format_event(event))
