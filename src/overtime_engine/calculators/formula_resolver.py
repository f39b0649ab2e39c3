"""Rate formula resolution by day type, employee category and date."""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.calculators.formula_parser import FormulaError
from overtime_engine.calculators.types import DayType
from overtime_engine.models import RateFormula


class FormulaNotFoundError(FormulaError):
    """Raised when no active formula covers a day type and date."""

    def __init__(self, day_type: str, as_of_date: date, employee_category: str | None):
        self.day_type = day_type
        self.as_of_date = as_of_date
        self.employee_category = employee_category
        super().__init__(
            f"No active rate formula for day type '{day_type}' on {as_of_date} "
            f"(category: {employee_category or 'all'})"
        )


class FormulaResolver:
    """Selects the rate formula that applies to a claim.

    Selection priority:
    1. Active, effective on the OT date, same day type
    2. Formula for the employee's employment type beats one for 'all'
    3. Latest effective_from wins
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(
        self,
        day_type: DayType | str,
        as_of_date: date,
        employee_category: str | None = None,
    ) -> RateFormula:
        """Return the applicable formula.

        Raises:
            FormulaNotFoundError: If nothing matches
        """
        day_type_value = DayType(day_type).value
        candidates = await self._get_candidate_formulas(day_type_value, as_of_date)

        best: RateFormula | None = None
        best_key: tuple[int, date] | None = None
        for formula in candidates:
            if formula.employee_category == "all":
                specificity = 0
            elif employee_category and formula.employee_category == employee_category:
                specificity = 1
            else:
                continue

            key = (specificity, formula.effective_from)
            if best_key is None or key > best_key:
                best = formula
                best_key = key

        if best is None:
            raise FormulaNotFoundError(day_type_value, as_of_date, employee_category)
        return best

    async def _get_candidate_formulas(
        self, day_type: str, as_of_date: date
    ) -> list[RateFormula]:
        result = await self.session.execute(
            select(RateFormula).where(
                RateFormula.day_type == day_type,
                RateFormula.is_active.is_(True),
                RateFormula.effective_from <= as_of_date,
            )
        )
        return [f for f in result.scalars().all() if f.is_effective_on(as_of_date)]
