"""Parser for user-authored overtime pay formulas.

Grammar (lowest to highest precedence)::

    expression  := comparison [ "?" expression ":" expression ]
    comparison  := additive [ ("<" | "<=" | ">" | ">=" | "==" | "!=") additive ]
    additive    := term { ("+" | "-") term }
    term        := unary { ("*" | "/") unary }
    unary       := ("+" | "-") unary | primary
    primary     := NUMBER | VARIABLE
                 | "IF" "(" expression "," expression "," expression ")"
                 | "(" expression ")"

The parser produces an immutable expression tree that is built once and
reused for every evaluation. Nesting depth is bounded so that parsing
terminates quickly on any input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from overtime_engine.calculators.types import (
    ALLOWED_FUNCTIONS,
    ALLOWED_VARIABLES,
    FormulaValidationResult,
)
from overtime_engine.errors import OvertimeError

DEFAULT_MAX_DEPTH = 32

_IDENTIFIER_PATTERN = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\b")
_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?|\.\d+)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op><=|>=|==|!=|[-+*/()<>,?:])
    """,
    re.VERBOSE,
)


class FormulaError(OvertimeError):
    """Base class for errors local to a formula."""


class FormulaSyntaxError(FormulaError):
    """Raised when a formula cannot be parsed."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class FormulaEvaluationError(FormulaError):
    """Raised when a parsed formula cannot produce a finite number."""


# ===== Expression tree =====


@dataclass(frozen=True)
class Number:
    value: Decimal
    text: str


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Expression


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Conditional:
    condition: Expression
    if_true: Expression
    if_false: Expression


Expression = Number | Variable | UnaryOp | BinaryOp | Conditional

COMPARISON_OPS = frozenset({"<", "<=", ">", ">=", "==", "!="})
_PRECEDENCE = {
    "<": 1, "<=": 1, ">": 1, ">=": 1, "==": 1, "!=": 1,
    "+": 2, "-": 2,
    "*": 3, "/": 3,
}
_UNARY_PRECEDENCE = 4


@dataclass(frozen=True)
class Token:
    kind: str  # 'number', 'ident', 'op', 'end'
    text: str
    position: int


def tokenize(formula: str) -> list[Token]:
    """Split a formula into tokens, rejecting any character outside the grammar."""
    tokens: list[Token] = []
    position = 0
    while position < len(formula):
        match = _TOKEN_PATTERN.match(formula, position)
        if match is None:
            raise FormulaSyntaxError(
                [f"Unexpected character '{formula[position]}' at position {position}"]
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), position))
        position = match.end()
    tokens.append(Token("end", "", len(formula)))
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: list[Token], max_depth: int):
        self.tokens = tokens
        self.index = 0
        self.depth = 0
        self.max_depth = max_depth

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != "end":
            self.index += 1
        return token

    def expect(self, text: str) -> Token:
        token = self.current
        if token.text != text:
            found = token.text or "end of formula"
            raise FormulaSyntaxError(
                [f"Expected '{text}' at position {token.position}, found '{found}'"]
            )
        return self.advance()

    def parse(self) -> Expression:
        expression = self.expression()
        if self.current.kind != "end":
            raise FormulaSyntaxError(
                [f"Unexpected '{self.current.text}' at position {self.current.position}"]
            )
        return expression

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > self.max_depth:
            raise FormulaSyntaxError(
                [f"Formula is nested too deeply (maximum depth {self.max_depth})"]
            )

    def _leave(self) -> None:
        self.depth -= 1

    def expression(self) -> Expression:
        self._enter()
        try:
            condition = self.comparison()
            if self.current.text == "?":
                self.advance()
                if_true = self.expression()
                self.expect(":")
                if_false = self.expression()
                return Conditional(condition, if_true, if_false)
            return condition
        finally:
            self._leave()

    def comparison(self) -> Expression:
        left = self.additive()
        if self.current.text in COMPARISON_OPS:
            op = self.advance().text
            right = self.additive()
            return BinaryOp(op, left, right)
        return left

    def additive(self) -> Expression:
        left = self.term()
        while self.current.text in ("+", "-"):
            op = self.advance().text
            left = BinaryOp(op, left, self.term())
        return left

    def term(self) -> Expression:
        left = self.unary()
        while self.current.text in ("*", "/"):
            op = self.advance().text
            left = BinaryOp(op, left, self.unary())
        return left

    def unary(self) -> Expression:
        if self.current.text in ("+", "-"):
            op = self.advance().text
            self._enter()
            try:
                return UnaryOp(op, self.unary())
            finally:
                self._leave()
        return self.primary()

    def primary(self) -> Expression:
        token = self.current
        if token.kind == "number":
            self.advance()
            return Number(Decimal(token.text), token.text)
        if token.kind == "ident":
            self.advance()
            if token.text == "IF":
                self.expect("(")
                condition = self.expression()
                self.expect(",")
                if_true = self.expression()
                self.expect(",")
                if_false = self.expression()
                self.expect(")")
                return Conditional(condition, if_true, if_false)
            if token.text in ALLOWED_VARIABLES:
                return Variable(token.text)
            raise FormulaSyntaxError([f"Unknown variable or function: {token.text}"])
        if token.text == "(":
            self.advance()
            inner = self.expression()
            self.expect(")")
            return inner
        found = token.text or "end of formula"
        raise FormulaSyntaxError(
            [f"Unexpected '{found}' at position {token.position}"]
        )


# ===== Authoring-time checks =====


def _check_parentheses(formula: str) -> list[str]:
    depth = 0
    for char in formula:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return ["Unbalanced parentheses: closing bracket without opening"]
    if depth > 0:
        return ["Unbalanced parentheses: missing closing bracket(s)"]
    return []


def _unknown_identifiers(formula: str) -> list[str]:
    seen: list[str] = []
    for name in _IDENTIFIER_PATTERN.findall(formula):
        if name in ALLOWED_VARIABLES or name in ALLOWED_FUNCTIONS:
            continue
        if name not in seen:
            seen.append(name)
    return seen


def extract_if_blocks(formula: str) -> list[str]:
    """Return the argument text of every IF(...) call, nested ones included.

    Brackets are matched by depth tracking so nested calls resolve correctly.
    """
    blocks: list[str] = []
    for match in re.finditer(r"\bIF\s*\(", formula):
        open_index = match.end() - 1
        depth = 0
        for index in range(open_index, len(formula)):
            if formula[index] == "(":
                depth += 1
            elif formula[index] == ")":
                depth -= 1
                if depth == 0:
                    blocks.append(formula[open_index + 1:index])
                    break
    return blocks


def split_top_level_arguments(arguments: str) -> list[str]:
    """Split on commas that are not inside nested parentheses."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    for char in arguments:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    parts.append("".join(current).strip())
    return parts


@lru_cache(maxsize=256)
def _analyse(formula: str, max_depth: int) -> tuple[tuple[str, ...], tuple[str, ...], Expression | None]:
    if not formula or not formula.strip():
        return ("Formula cannot be empty",), (), None

    errors = _check_parentheses(formula)

    unknown = _unknown_identifiers(formula)
    if unknown:
        errors.append(f"Unknown variables or functions: {', '.join(unknown)}")

    for block in extract_if_blocks(formula):
        if len(split_top_level_arguments(block)) != 3:
            errors.append(
                "IF statement requires exactly 3 arguments "
                "(condition, true_value, false_value)"
            )
            break

    if errors:
        return tuple(errors), tuple(unknown), None

    try:
        tree = _Parser(tokenize(formula), max_depth).parse()
    except FormulaSyntaxError as e:
        return tuple(f"Syntax error: {msg}" for msg in e.errors), (), None

    return (), (), tree


def validate_formula_syntax(
    formula: str, max_depth: int = DEFAULT_MAX_DEPTH
) -> FormulaValidationResult:
    """Check a formula without evaluating it."""
    errors, unknown, _ = _analyse(formula, max_depth)
    return FormulaValidationResult(
        is_valid=not errors,
        errors=list(errors),
        unknown_identifiers=list(unknown),
    )


def parse_formula(formula: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Expression:
    """Parse a formula into an expression tree.

    Raises:
        FormulaSyntaxError: If the formula fails validation
    """
    errors, _, tree = _analyse(formula, max_depth)
    if errors or tree is None:
        raise FormulaSyntaxError(list(errors))
    return tree


# ===== Rendering =====


def _precedence(node: Expression) -> int:
    if isinstance(node, BinaryOp):
        return _PRECEDENCE[node.op]
    if isinstance(node, UnaryOp):
        return _UNARY_PRECEDENCE
    # Literals, variables and parenthesised conditionals are atomic
    return _UNARY_PRECEDENCE + 1


def render(node: Expression) -> str:
    """Render a tree as a conditional-expression string (``c ? a : b``)."""
    if isinstance(node, Number):
        return node.text
    if isinstance(node, Variable):
        return node.name
    if isinstance(node, Conditional):
        return (
            f"({render(node.condition)} ? {render(node.if_true)} "
            f": {render(node.if_false)})"
        )
    if isinstance(node, UnaryOp):
        operand = render(node.operand)
        if _precedence(node.operand) < _UNARY_PRECEDENCE:
            operand = f"({operand})"
        return f"{node.op}{operand}"

    own = _PRECEDENCE[node.op]
    left = render(node.left)
    right = render(node.right)
    if _precedence(node.left) < own:
        left = f"({left})"
    # Right operand needs brackets at equal precedence: a - (b - c), a / (b * c)
    if _precedence(node.right) <= own:
        right = f"({right})"
    return f"{left} {node.op} {right}"


def desugar_if(formula: str, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    """Rewrite every ``IF(c, a, b)`` call as ``(c ? a : b)``.

    Works on the parsed tree, so nested and adjacent calls are handled
    without repeated string rewriting.
    """
    return render(parse_formula(formula, max_depth))
