"""Lifecycle event descriptors handed to the notification dispatcher.

Events are immutable and carry everything a dispatcher needs to build a
user-facing alert. The engine never waits for, or depends on, delivery.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from overtime_engine.models import OvertimeRequest


class EventKind(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


def format_ot_date(value: date) -> str:
    """Human-readable date used in notification text, e.g. '05 Mar 2026'."""
    return value.strftime("%d %b %Y")


@dataclass(frozen=True)
class OvertimeEvent:
    """A lifecycle event addressed to one user."""

    target_user_id: UUID
    event_kind: EventKind
    request_id: UUID
    ticket_number: str
    contextual_actor_name: str
    formatted_date: str
    hours: Decimal
    event_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.event_kind.value

    @classmethod
    def for_request(
        cls,
        request: OvertimeRequest,
        kind: EventKind,
        target_user_id: UUID,
        actor_name: str,
    ) -> OvertimeEvent:
        return cls(
            target_user_id=target_user_id,
            event_kind=kind,
            request_id=request.request_id,
            ticket_number=request.ticket_number,
            contextual_actor_name=actor_name,
            formatted_date=format_ot_date(request.ot_date),
            hours=request.total_hours,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the notification boundary shape."""
        return {
            "targetUserId": str(self.target_user_id),
            "eventKind": self.event_kind.value,
            "requestId": str(self.request_id),
            "ticketNumber": self.ticket_number,
            "contextualActorName": self.contextual_actor_name,
            "formattedDate": self.formatted_date,
            "hours": float(self.hours),
            "eventId": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
