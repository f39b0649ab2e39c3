"""Pay formula calculation."""

from overtime_engine.calculators.formula_engine import PayFormulaEngine
from overtime_engine.calculators.formula_parser import (
    FormulaError,
    FormulaEvaluationError,
    FormulaSyntaxError,
    desugar_if,
    parse_formula,
    validate_formula_syntax,
)
from overtime_engine.calculators.formula_resolver import FormulaNotFoundError, FormulaResolver
from overtime_engine.calculators.types import (
    DayType,
    FormulaEvaluationResult,
    FormulaValidationResult,
    PayCalculation,
    PayRates,
)

__all__ = [
    "PayFormulaEngine",
    "FormulaError",
    "FormulaEvaluationError",
    "FormulaSyntaxError",
    "FormulaNotFoundError",
    "FormulaResolver",
    "desugar_if",
    "parse_formula",
    "validate_formula_syntax",
    "DayType",
    "FormulaEvaluationResult",
    "FormulaValidationResult",
    "PayCalculation",
    "PayRates",
]
