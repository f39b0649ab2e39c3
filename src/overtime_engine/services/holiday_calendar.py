"""Day-type classification through a holiday calendar lookup."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.calculators.types import DayType
from overtime_engine.models import PublicHoliday

_WEEKEND = {5: DayType.SATURDAY, 6: DayType.SUNDAY}


@runtime_checkable
class HolidayCalendar(Protocol):
    """Lookup keyed by date; None means the calendar has no entry."""

    async def day_type_for(self, ot_date: date) -> DayType | None:
        ...


class StaticHolidayCalendar:
    """In-memory calendar: fixed holiday dates plus Saturday/Sunday."""

    def __init__(self, holidays: Iterable[date] = ()):
        self.holidays = frozenset(holidays)

    async def day_type_for(self, ot_date: date) -> DayType | None:
        if ot_date in self.holidays:
            return DayType.PUBLIC_HOLIDAY
        return _WEEKEND.get(ot_date.weekday())


class DatabaseHolidayCalendar:
    """Calendar backed by the public_holiday table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def day_type_for(self, ot_date: date) -> DayType | None:
        result = await self.session.execute(
            select(PublicHoliday.holiday_id).where(PublicHoliday.holiday_date == ot_date)
        )
        if result.first() is not None:
            return DayType.PUBLIC_HOLIDAY
        return _WEEKEND.get(ot_date.weekday())


async def classify_day(calendar: HolidayCalendar | None, ot_date: date) -> DayType:
    """Classify a claim date; a calendar miss counts as a weekday."""
    if calendar is None:
        return DayType.WEEKDAY
    day_type = await calendar.day_type_for(ot_date)
    return day_type or DayType.WEEKDAY
