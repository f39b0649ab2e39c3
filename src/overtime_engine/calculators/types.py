"""Type definitions for the pay formula pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class DayType(str, Enum):
    """Classification of the claim date; selects the formula variant."""

    WEEKDAY = "weekday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"
    PUBLIC_HOLIDAY = "public_holiday"


# Names a formula may reference
ALLOWED_VARIABLES = ("Hours", "ORP", "HRP", "Basic")
ALLOWED_FUNCTIONS = ("IF",)


@dataclass(frozen=True)
class PayRates:
    """Salary-derived rates feeding a formula."""

    basic: Decimal
    orp: Decimal  # Ordinary rate portion: basic / working days
    hrp: Decimal  # Hourly rate portion: orp / hours per day

    def variables(self, hours: Decimal) -> dict[str, Decimal]:
        """Variable bindings for formula evaluation."""
        return {"Hours": hours, "ORP": self.orp, "HRP": self.hrp, "Basic": self.basic}


@dataclass
class FormulaValidationResult:
    """Authoring-time feedback for a formula string."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    unknown_identifiers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PayCalculation:
    """Successful evaluation of a formula."""

    orp: Decimal
    hrp: Decimal
    base_amount: Decimal  # Formula result before the day-type multiplier
    ot_amount: Decimal
    multiplier: Decimal | None = None

    def breakdown(self, basic: Decimal, hours: Decimal) -> str:
        lines = [
            f"Basic: {basic:.2f}",
            f"ORP: {self.orp:.2f}",
            f"HRP: {self.hrp:.2f}",
            f"Hours: {hours}",
        ]
        if self.multiplier is not None:
            lines.append(f"Multiplier: {self.multiplier}")
            lines.append(f"Final OT Amount: {self.ot_amount:.2f}")
        else:
            lines.append(f"OT Amount: {self.ot_amount:.2f}")
        return "\n".join(lines)


@dataclass(frozen=True)
class FormulaEvaluationResult:
    """Outcome of the formula evaluation service boundary.

    Every call is independent: the same inputs always produce the same result.
    """

    success: bool
    orp: Decimal | None = None
    hrp: Decimal | None = None
    ot_amount: Decimal | None = None
    breakdown: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "orp": str(self.orp) if self.orp is not None else None,
            "hrp": str(self.hrp) if self.hrp is not None else None,
            "otAmount": str(self.ot_amount) if self.ot_amount is not None else None,
            "breakdown": self.breakdown,
            "error": self.error,
        }
