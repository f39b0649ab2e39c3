"""Formula authoring and evaluation endpoints."""

from typing import Any

from fastapi import APIRouter

from overtime_engine.api.schemas import (
    FormulaEvaluateRequest,
    FormulaValidateRequest,
    FormulaValidateResponse,
)
from overtime_engine.calculators.formula_engine import PayFormulaEngine
from overtime_engine.calculators.formula_parser import desugar_if

router = APIRouter(prefix="/formulas", tags=["formulas"])


@router.post("/validate", response_model=FormulaValidateResponse)
async def validate_formula(payload: FormulaValidateRequest) -> FormulaValidateResponse:
    """Check a formula before it is saved."""
    engine = PayFormulaEngine()
    result = engine.validate(payload.formula)
    return FormulaValidateResponse(
        is_valid=result.is_valid,
        errors=result.errors,
        unknown_identifiers=result.unknown_identifiers,
        desugared=desugar_if(payload.formula, engine.settings.formula_max_depth)
        if result.is_valid
        else None,
    )


@router.post("/evaluate")
async def evaluate_formula(payload: FormulaEvaluateRequest) -> dict[str, Any]:
    """Evaluate a formula for one salary and hour count.

    Formula problems are reported in the body with ``success: false``.
    """
    result = PayFormulaEngine().evaluate_request(
        payload.formula,
        payload.basic_salary,
        payload.hours,
        payload.day_type,
        payload.multiplier,
    )
    return result.to_dict()
