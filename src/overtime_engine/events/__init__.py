"""Lifecycle events for the notification boundary."""

from overtime_engine.events.emitter import (
    EventBatch,
    EventEmitter,
    NotificationDispatcher,
    log_event,
)
from overtime_engine.events.types import EventKind, OvertimeEvent, format_ot_date

__all__ = [
    "EventBatch",
    "EventEmitter",
    "NotificationDispatcher",
    "log_event",
    "EventKind",
    "OvertimeEvent",
    "format_ot_date",
]
