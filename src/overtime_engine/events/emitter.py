"""Event emitter for publishing lifecycle events.

The emitter provides:
- Handler registration with event-kind filtering
- Error isolation (handler failures are logged, never raised)
- Event batching so a unit of work publishes only after it succeeds
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, runtime_checkable

from overtime_engine.events.types import EventKind, OvertimeEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Protocol for anything that delivers lifecycle events to users."""

    def __call__(self, event: OvertimeEvent) -> None:
        """Handle a lifecycle event."""
        ...


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: NotificationDispatcher
    event_kinds: frozenset[EventKind] | None  # None = all events

    def accepts(self, event: OvertimeEvent) -> bool:
        return self.event_kinds is None or event.event_kind in self.event_kinds


class EventEmitter:
    """Synchronous, fire-and-forget event emitter.

    Usage:
        emitter = EventEmitter()
        emitter.on(EventKind.REJECTED, notify_employee)
        emitter.on_all(audit_log)

        with emitter.batch() as batch:
            batch.add(approved)
            batch.add(rejected)
        # Both delivered when the block exits without an exception
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(
        self,
        event_kind: EventKind | list[EventKind],
        handler: NotificationDispatcher,
    ) -> None:
        """Register handler for specific event kind(s)."""
        kinds = frozenset(event_kind if isinstance(event_kind, list) else [event_kind])
        self._handlers.append(HandlerRegistration(handler=handler, event_kinds=kinds))

    def on_all(self, handler: NotificationDispatcher) -> None:
        """Register handler for all events."""
        self._handlers.append(HandlerRegistration(handler=handler, event_kinds=None))

    def emit(self, event: OvertimeEvent) -> list[Exception]:
        """Deliver an event to every matching handler now.

        Returns the exceptions raised by handlers; none of them propagates.
        """
        errors: list[Exception] = []
        for reg in self._handlers:
            if not reg.accepts(event):
                continue
            try:
                reg.handler(event)
            except Exception as e:
                logger.exception(
                    "Handler %s failed for %s event on request %s",
                    reg.handler,
                    event.event_type,
                    event.request_id,
                )
                errors.append(e)
        return errors

    def emit_all(self, events: Iterable[OvertimeEvent]) -> list[Exception]:
        errors: list[Exception] = []
        for event in events:
            errors.extend(self.emit(event))
        return errors

    def batch(self) -> EventBatch:
        """Collect events that are only delivered if the block exits cleanly."""
        return EventBatch(self)


class EventBatch:
    """Context manager holding events for one unit of work."""

    def __init__(self, emitter: EventEmitter) -> None:
        self._emitter = emitter
        self._pending: list[OvertimeEvent] = []
        self._errors: list[Exception] = []

    def __enter__(self) -> EventBatch:
        self._pending = []
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        pending, self._pending = self._pending, []
        if exc_type is None:
            self._errors = self._emitter.emit_all(pending)
        else:
            logger.debug("Dropping %d undelivered OT event(s)", len(pending))

    def add(self, event: OvertimeEvent) -> None:
        self._pending.append(event)

    @property
    def errors(self) -> list[Exception]:
        """Handler errors, available after the block exits."""
        return self._errors


def log_event(event: OvertimeEvent) -> None:
    """Default dispatcher: record the event in the application log."""
    logger.info("OT %s notification: %s", event.event_type, event.to_json())
