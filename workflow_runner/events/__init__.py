"""Lifecycle event publishing."""

from workflow_runner.events.publisher import EventPublisher, LoggingSubscriber, format_event

__all__ = ["EventPublisher", "LoggingSubscriber", "format_event"]
