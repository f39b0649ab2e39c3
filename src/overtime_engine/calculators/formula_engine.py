"""Pay formula engine: turns a configured formula into an OT amount."""

from __future__ import annotations

import logging
from decimal import Context, Decimal, DivisionByZero, InvalidOperation, Overflow
from typing import Union

from overtime_engine.calculators.formula_parser import (
    COMPARISON_OPS,
    BinaryOp,
    Conditional,
    Expression,
    FormulaError,
    FormulaEvaluationError,
    FormulaSyntaxError,
    Number,
    UnaryOp,
    Variable,
    parse_formula,
    validate_formula_syntax,
)
from overtime_engine.calculators.types import (
    DayType,
    FormulaEvaluationResult,
    FormulaValidationResult,
    PayCalculation,
    PayRates,
)
from overtime_engine.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Comparisons yield booleans; arithmetic only accepts Decimals
Value = Union[Decimal, bool]

_CONTEXT = Context(prec=28, traps=[DivisionByZero, InvalidOperation, Overflow])


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a numeric input without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def _number(value: Value, context: str) -> Decimal:
    if isinstance(value, bool):
        raise FormulaEvaluationError(f"Comparison result used as a number in {context}")
    return value


def evaluate_expression(node: Expression, variables: dict[str, Decimal]) -> Value:
    """Evaluate an expression tree against numeric variable bindings."""
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Variable):
        try:
            return variables[node.name]
        except KeyError:
            raise FormulaEvaluationError(f"No value bound for variable {node.name}")
    if isinstance(node, Conditional):
        condition = evaluate_expression(node.condition, variables)
        chosen = node.if_true if condition else node.if_false
        return evaluate_expression(chosen, variables)
    if isinstance(node, UnaryOp):
        operand = _number(evaluate_expression(node.operand, variables), "unary operation")
        return _CONTEXT.minus(operand) if node.op == "-" else _CONTEXT.plus(operand)

    left = _number(evaluate_expression(node.left, variables), f"'{node.op}'")
    right = _number(evaluate_expression(node.right, variables), f"'{node.op}'")
    if node.op in COMPARISON_OPS:
        return _compare(node.op, left, right)
    try:
        if node.op == "+":
            return _CONTEXT.add(left, right)
        if node.op == "-":
            return _CONTEXT.subtract(left, right)
        if node.op == "*":
            return _CONTEXT.multiply(left, right)
        return _CONTEXT.divide(left, right)
    except DivisionByZero:
        raise FormulaEvaluationError("Division by zero")
    except (InvalidOperation, Overflow) as e:
        raise FormulaEvaluationError(f"Arithmetic error: {e!r}")


def _compare(op: str, left: Decimal, right: Decimal) -> bool:
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    if op == "==":
        return left == right
    return left != right


class PayFormulaEngine:
    """Evaluates human-authored OT pay formulas.

    Variables available to formulas:
    - Hours: worked OT hours
    - Basic: monthly basic salary
    - ORP: ordinary rate portion (Basic / working days per month)
    - HRP: hourly rate portion (ORP / hours per day)

    The engine holds no per-call state; evaluating the same inputs twice
    yields identical results.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def compute_rates(self, basic_salary: Decimal | int | float | str) -> PayRates:
        """Derive ORP and HRP from a monthly basic salary."""
        basic = to_decimal(basic_salary)
        orp = _CONTEXT.divide(basic, Decimal(self.settings.working_days_per_month))
        hrp = _CONTEXT.divide(orp, Decimal(self.settings.hours_per_day))
        return PayRates(basic=basic, orp=orp, hrp=hrp)

    def validate(self, formula: str) -> FormulaValidationResult:
        """Authoring-time syntax check."""
        result = validate_formula_syntax(formula, self.settings.formula_max_depth)
        if formula and len(formula) > self.settings.formula_max_length:
            result.is_valid = False
            result.errors.append(
                f"Formula exceeds maximum length of {self.settings.formula_max_length}"
            )
        return result

    def compile(self, formula: str) -> Expression:
        """Parse a formula once; the returned tree can be evaluated repeatedly.

        Raises:
            FormulaSyntaxError: If the formula is invalid
        """
        if formula and len(formula) > self.settings.formula_max_length:
            raise FormulaSyntaxError(
                [f"Formula exceeds maximum length of {self.settings.formula_max_length}"]
            )
        return parse_formula(formula, self.settings.formula_max_depth)

    def calculate(
        self,
        formula: str,
        basic_salary: Decimal | int | float | str,
        hours: Decimal | int | float | str,
        multiplier: Decimal | int | float | str | None = None,
    ) -> PayCalculation:
        """Evaluate a formula and apply the optional day-type multiplier.

        Raises:
            FormulaSyntaxError: If the formula cannot be parsed
            FormulaEvaluationError: If it does not yield a finite number
        """
        tree = self.compile(formula)
        rates = self.compute_rates(basic_salary)
        worked = to_decimal(hours)

        value = evaluate_expression(tree, rates.variables(worked))
        if isinstance(value, bool) or not isinstance(value, Decimal):
            raise FormulaEvaluationError("Formula did not evaluate to a valid number")
        if not value.is_finite():
            raise FormulaEvaluationError("Formula did not evaluate to a finite number")

        factor = to_decimal(multiplier) if multiplier is not None else None
        amount = _CONTEXT.multiply(value, factor) if factor is not None else value

        return PayCalculation(
            orp=rates.orp,
            hrp=rates.hrp,
            base_amount=value,
            ot_amount=amount,
            multiplier=factor,
        )

    def evaluate_request(
        self,
        formula: str,
        basic_salary: Decimal | int | float | str,
        hours: Decimal | int | float | str,
        day_type: DayType | str = DayType.WEEKDAY,
        multiplier: Decimal | int | float | str | None = None,
    ) -> FormulaEvaluationResult:
        """Formula evaluation service boundary.

        Never raises for formula problems; failures come back as
        ``success=False`` with the error message.
        """
        try:
            calculation = self.calculate(formula, basic_salary, hours, multiplier)
        except FormulaError as e:
            logger.warning(
                "Formula evaluation failed for day type %s: %s",
                DayType(day_type).value,
                e,
            )
            return FormulaEvaluationResult(success=False, error=str(e))

        return FormulaEvaluationResult(
            success=True,
            orp=calculation.orp,
            hrp=calculation.hrp,
            ot_amount=calculation.ot_amount,
            breakdown=calculation.breakdown(to_decimal(basic_salary), to_decimal(hours)),
        )
