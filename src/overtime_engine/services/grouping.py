"""Read-side grouping of requests by employee and date.

Approvers see one item per employee per calendar day even when the
employee logged several sessions. The projection is recomputed on every
read and never writes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Sequence
from uuid import UUID

from overtime_engine.models import OvertimeRequest


@dataclass
class DailyOvertimeGroup:
    """All sessions of one employee on one date."""

    employee_id: UUID
    ot_date: date
    sessions: list[OvertimeRequest] = field(default_factory=list)
    total_hours: Decimal = Decimal("0")
    total_amount: Decimal | None = None
    statuses: frozenset[str] = frozenset()
    violations: dict[str, Any] = field(default_factory=dict)

    @property
    def request_ids(self) -> list[UUID]:
        return [s.request_id for s in self.sessions]

    @property
    def is_mixed(self) -> bool:
        """True when members of the day are in different states."""
        return len(self.statuses) > 1

    @property
    def has_violations(self) -> bool:
        return bool(self.violations)


def group_by_employee_and_date(
    requests: Iterable[OvertimeRequest],
) -> list[DailyOvertimeGroup]:
    """Group requests under (employee_id, ot_date).

    Sessions are ordered by start time, hours and amounts summed, violation
    maps unioned. Statuses are kept as the set of distinct member statuses
    so a mixed day stays visible. Groups come back newest date first.
    """
    buckets: dict[tuple[UUID, date], list[OvertimeRequest]] = {}
    for request in requests:
        buckets.setdefault((request.employee_id, request.ot_date), []).append(request)

    groups = [_build_group(key, members) for key, members in buckets.items()]
    groups.sort(key=lambda g: (g.ot_date, str(g.employee_id)), reverse=True)
    return groups


def _build_group(
    key: tuple[UUID, date], members: Sequence[OvertimeRequest]
) -> DailyOvertimeGroup:
    employee_id, ot_date = key
    sessions = sorted(members, key=lambda r: r.start_time)

    amounts = [s.ot_amount for s in sessions if s.ot_amount is not None]
    violations: dict[str, Any] = {}
    for session in sessions:
        violations.update(session.threshold_violations or {})

    return DailyOvertimeGroup(
        employee_id=employee_id,
        ot_date=ot_date,
        sessions=sessions,
        total_hours=sum((Decimal(s.total_hours) for s in sessions), Decimal("0")),
        total_amount=sum(amounts, Decimal("0")) if amounts else None,
        statuses=frozenset(str(getattr(s.status, "value", s.status)) for s in sessions),
        violations=violations,
    )
