"""
Unit tests for the event publisher.
"""

import logging

from workflow_runner.core.models import TaskEvent, TaskEventType
from workflow_runner.events.publisher import EventPublisher, LoggingSubscriber, format_event

from tests.conftest import EventRecorder


def started(task_id: str = "a") -> TaskEvent:
    return TaskEvent(type=TaskEventType.STARTED, task_id=task_id, attempt=1)


class TestEventPublisher:
    """Tests for EventPublisher."""

    def test_delivers_in_subscription_order(self):
        """Test every subscriber sees the event, in order."""
        publisher = EventPublisher()
        seen: list[str] = []
        publisher.subscribe(lambda e: seen.append("first"))
        publisher.subscribe(lambda e: seen.append("second"))

        publisher.publish(started())

        assert seen == ["first", "second"]

    def test_delivery_is_synchronous(self):
        """Test publish returns only after handlers have run."""
        publisher = EventPublisher()
        recorder = publisher.subscribe(EventRecorder())

        publisher.publish(started("x"))

        assert recorder.trace == [("STARTED", "x")]

    def test_unsubscribe(self):
        """Test an unsubscribed handler stops receiving events."""
        publisher = EventPublisher()
        recorder = publisher.subscribe(EventRecorder())

        assert publisher.unsubscribe(recorder)
        publisher.publish(started())

        assert recorder.events == []
        assert not publisher.unsubscribe(recorder)

    def test_clear(self):
        """Test clear removes every handler."""
        publisher = EventPublisher()
        publisher.subscribe(EventRecorder())
        publisher.subscribe(EventRecorder())

        publisher.clear()

        assert publisher.subscriber_count == 0

    def test_failing_handler_is_isolated(self, caplog):
        """Test a raising handler does not stop other subscribers."""
        publisher = EventPublisher()

        def broken(event):
            raise RuntimeError("handler bug")

        publisher.subscribe(broken)
        recorder = publisher.subscribe(EventRecorder())

        with caplog.at_level(logging.ERROR):
            publisher.publish(started())

        assert len(recorder.events) == 1
        assert "handler bug" in caplog.text

    def test_subscribe_during_publish(self):
        """Test a handler added mid-publish only sees later events."""
        publisher = EventPublisher()
        late = EventRecorder()

        def add_late(event):
            if late not in publisher._handlers:
                publisher.subscribe(late)

        publisher.subscribe(add_late)
        publisher.publish(started("first"))
        publisher.publish(started("second"))

        assert late.trace == [("STARTED", "second")]


class TestLoggingSubscriber:
    """Tests for the logging subscriber."""

    def test_format_event(self):
        """Test the console line format."""
        event = TaskEvent(type=TaskEventType.RETRY, task_id="fetch", attempt=2, error="boom")

        assert format_event(event) == "RETRY: fetch (attempt 2) - boom"

    def test_format_skip_event(self):
        """Test skip events have no attempt number."""
        event = TaskEvent(type=TaskEventType.FAILED, task_id="b", error="Dependency a failed")

        assert format_event(event) == "FAILED: b - Dependency a failed"

    def test_failures_logged_as_warning(self, caplog):
        """Test FAILED and RETRY events are logged at WARNING."""
        subscriber = LoggingSubscriber(logging.getLogger("test.events"))

        with caplog.at_level(logging.INFO, logger="test.events"):
            subscriber(started())
            subscriber(TaskEvent(type=TaskEventType.FAILED, task_id="a", attempt=1, error="boom"))

        levels = [record.levelno for record in caplog.records]
        assert levels == [logging.INFO, logging.WARNING]
