"""Formula authoring command line interface.

Usage:
    python -m overtime_engine.cli validate "IF(Hours>8, HRP*Hours*1.5, HRP*Hours)"
    python -m overtime_engine.cli evaluate "HRP*Hours" --basic 2600 --hours 10
    python -m overtime_engine.cli desugar "IF(Hours>8, 2, 1)"
"""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal, InvalidOperation
from typing import Callable

from overtime_engine.calculators.formula_engine import PayFormulaEngine
from overtime_engine.calculators.formula_parser import FormulaSyntaxError, desugar_if
from overtime_engine.calculators.types import DayType


def parse_decimal(s: str) -> Decimal:
    """Parse a decimal argument."""
    try:
        return Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {s!r}")


class FormulaCli:
    """Formula Command Line Interface."""

    def __init__(self, engine: PayFormulaEngine | None = None) -> None:
        self.engine = engine or PayFormulaEngine()
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m overtime_engine.cli",
            description="Overtime pay formula tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        validate = subparsers.add_parser("validate", help="Check formula syntax")
        validate.add_argument("formula", help="Formula text")

        evaluate = subparsers.add_parser("evaluate", help="Evaluate a formula")
        evaluate.add_argument("formula", help="Formula text")
        evaluate.add_argument("--basic", type=parse_decimal, required=True, help="Monthly basic salary")
        evaluate.add_argument("--hours", type=parse_decimal, required=True, help="Worked OT hours")
        evaluate.add_argument(
            "--day-type",
            choices=[d.value for d in DayType],
            default=DayType.WEEKDAY.value,
        )
        evaluate.add_argument("--multiplier", type=parse_decimal, help="Day-type multiplier")

        desugar = subparsers.add_parser("desugar", help="Rewrite IF calls as ternaries")
        desugar.add_argument("formula", help="Formula text")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "validate": self._cmd_validate,
            "evaluate": self._cmd_evaluate,
            "desugar": self._cmd_desugar,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_validate(self, args: argparse.Namespace) -> int:
        result = self.engine.validate(args.formula)
        print(
            json.dumps(
                {
                    "isValid": result.is_valid,
                    "errors": result.errors,
                    "unknownIdentifiers": result.unknown_identifiers,
                },
                indent=2,
            )
        )
        return 0 if result.is_valid else 1

    def _cmd_evaluate(self, args: argparse.Namespace) -> int:
        result = self.engine.evaluate_request(
            args.formula,
            args.basic,
            args.hours,
            args.day_type,
            args.multiplier,
        )
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.success else 1

    def _cmd_desugar(self, args: argparse.Namespace) -> int:
        try:
            print(desugar_if(args.formula, self.engine.settings.formula_max_depth))
        except FormulaSyntaxError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        return 0


def main() -> int:
    """CLI entry point."""
    cli = FormulaCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
