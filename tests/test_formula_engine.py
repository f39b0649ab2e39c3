"""Tests for the pay formula engine and formula resolution."""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings as hypothesis_settings, strategies as st

from overtime_engine.calculators.formula_engine import PayFormulaEngine, evaluate_expression
from overtime_engine.calculators.formula_parser import (
    FormulaEvaluationError,
    FormulaSyntaxError,
    parse_formula,
)
from overtime_engine.calculators.formula_resolver import FormulaNotFoundError, FormulaResolver
from overtime_engine.calculators.types import DayType
from overtime_engine.models import RateFormula

from conftest import WEEKDAY_FORMULA


@pytest.fixture
def engine(settings) -> PayFormulaEngine:
    return PayFormulaEngine(settings)


class TestComputeRates:
    """Test ORP/HRP derivation."""

    def test_default_divisors(self, engine):
        rates = engine.compute_rates(Decimal("2600"))

        assert rates.orp == Decimal("100")
        assert rates.hrp == Decimal("12.5")

    def test_configurable_divisors(self, settings):
        engine = PayFormulaEngine(replace(settings, working_days_per_month=20, hours_per_day=10))
        rates = engine.compute_rates("3000")

        assert rates.orp == Decimal("150")
        assert rates.hrp == Decimal("15")


class TestCalculate:
    """Test formula evaluation against salary and hours."""

    def test_overtime_above_eight_hours(self, engine):
        """Basic 2600, 10 hours: ORP 100, HRP 12.5, amount 12.5 * 10 * 1.5."""
        result = engine.calculate(WEEKDAY_FORMULA, Decimal("2600"), Decimal("10"))

        assert result.orp == Decimal("100")
        assert result.hrp == Decimal("12.5")
        assert result.ot_amount == Decimal("187.5")

    def test_false_branch(self, engine):
        result = engine.calculate(WEEKDAY_FORMULA, Decimal("2600"), Decimal("4"))
        assert result.ot_amount == Decimal("50")

    def test_multiplier_applied(self, engine):
        result = engine.calculate("HRP * Hours", 2600, 2, multiplier=Decimal("1.5"))

        assert result.base_amount == Decimal("25")
        assert result.ot_amount == Decimal("37.5")
        assert result.multiplier == Decimal("1.5")

    def test_float_inputs_have_no_binary_artefacts(self, engine):
        result = engine.calculate("Hours * 0.1", 2600, 0.3)
        assert result.ot_amount == Decimal("0.03")

    def test_division_by_zero(self, engine):
        with pytest.raises(FormulaEvaluationError):
            engine.calculate("HRP / (Hours - Hours)", 2600, 2)

    def test_comparison_result_is_not_an_amount(self, engine):
        with pytest.raises(FormulaEvaluationError):
            engine.calculate("Hours > 8", 2600, 10)

    def test_comparison_in_arithmetic_rejected(self, engine):
        with pytest.raises(FormulaEvaluationError):
            engine.calculate("(Hours > 8) * 2", 2600, 10)

    def test_syntax_error_raised(self, engine):
        with pytest.raises(FormulaSyntaxError):
            engine.calculate("Hours * Bonus", 2600, 2)

    def test_length_limit(self, settings):
        engine = PayFormulaEngine(replace(settings, formula_max_length=10))

        with pytest.raises(FormulaSyntaxError):
            engine.calculate("Hours * HRP * 1.5", 2600, 2)
        assert engine.validate("Hours * HRP * 1.5").is_valid is False

    def test_unbound_variable(self):
        with pytest.raises(FormulaEvaluationError):
            evaluate_expression(parse_formula("HRP * Hours"), {"Hours": Decimal("1")})


class TestEvaluateRequest:
    """Test the evaluation service boundary."""

    def test_success_shape(self, engine):
        result = engine.evaluate_request(WEEKDAY_FORMULA, 2600, 10, DayType.WEEKDAY)
        data = result.to_dict()

        assert data["success"] is True
        assert Decimal(data["otAmount"]) == Decimal("187.5")
        assert Decimal(data["orp"]) == Decimal("100")
        assert data["error"] is None
        assert "OT Amount: 187.50" in data["breakdown"]

    def test_failure_does_not_raise(self, engine):
        result = engine.evaluate_request("Hours *", 2600, 10)

        assert result.success is False
        assert result.ot_amount is None
        assert result.error

    def test_breakdown_with_multiplier(self, engine):
        result = engine.evaluate_request("HRP * Hours", 2600, 2, DayType.SATURDAY, Decimal("1.5"))

        assert "Multiplier: 1.5" in result.breakdown
        assert "Final OT Amount: 37.50" in result.breakdown

    @given(
        basic=st.decimals(min_value=0, max_value=100000, places=2),
        hours=st.decimals(min_value=Decimal("0.25"), max_value=24, places=2),
        day_type=st.sampled_from(list(DayType)),
    )
    @hypothesis_settings(max_examples=50, deadline=None)
    def test_same_inputs_same_outputs(self, basic, hours, day_type):
        engine = PayFormulaEngine()
        first = engine.evaluate_request(WEEKDAY_FORMULA, basic, hours, day_type)
        second = engine.evaluate_request(WEEKDAY_FORMULA, basic, hours, day_type)

        assert first == second


class TestFormulaResolver:
    """Test formula selection by day type, category and effective date."""

    async def test_resolves_by_day_type(self, session, test_policies):
        formula = await FormulaResolver(session).resolve(DayType.SATURDAY, date(2026, 3, 7))
        assert formula.formula_id == test_policies["saturday"].formula_id

    async def test_specific_category_beats_all(self, session, test_policies):
        contract = RateFormula(
            formula_id=uuid4(),
            formula_name="Contract weekday OT",
            day_type="weekday",
            base_formula="HRP * Hours",
            multiplier=Decimal("1"),
            employee_category="contract",
            effective_from=date(2024, 1, 1),
        )
        session.add(contract)
        await session.flush()

        resolver = FormulaResolver(session)
        chosen = await resolver.resolve("weekday", date(2026, 3, 2), "contract")
        default = await resolver.resolve("weekday", date(2026, 3, 2), "permanent")

        assert chosen.formula_id == contract.formula_id
        assert default.formula_id == test_policies["weekday"].formula_id

    async def test_latest_effective_from_wins(self, session, test_policies):
        newer = RateFormula(
            formula_id=uuid4(),
            formula_name="Weekday OT 2026",
            day_type="weekday",
            base_formula="HRP * Hours * 2",
            multiplier=Decimal("1"),
            effective_from=date(2026, 1, 1),
        )
        session.add(newer)
        await session.flush()

        resolver = FormulaResolver(session)

        assert (await resolver.resolve("weekday", date(2026, 3, 2))).formula_id == newer.formula_id
        assert (
            await resolver.resolve("weekday", date(2025, 6, 1))
        ).formula_id == test_policies["weekday"].formula_id

    async def test_expired_formula_skipped(self, session, test_policies):
        retired = RateFormula(
            formula_id=uuid4(),
            formula_name="Weekday OT pilot",
            day_type="weekday",
            base_formula="HRP * Hours * 3",
            multiplier=Decimal("1"),
            effective_from=date(2026, 1, 1),
            effective_to=date(2026, 2, 28),
        )
        session.add(retired)
        await session.flush()

        resolver = FormulaResolver(session)

        assert (await resolver.resolve("weekday", date(2026, 2, 28))).formula_id == retired.formula_id
        assert (
            await resolver.resolve("weekday", date(2026, 3, 2))
        ).formula_id == test_policies["weekday"].formula_id

    async def test_not_found(self, session, test_policies):
        with pytest.raises(FormulaNotFoundError) as exc_info:
            await FormulaResolver(session).resolve(DayType.SUNDAY, date(2026, 3, 8))

        assert exc_info.value.day_type == "sunday"
