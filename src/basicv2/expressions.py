"""
Expression Evaluator

Evaluates the small numeric expression language the simulator supports:
    - single-letter variables (unset reads as 0)
    - + - * / with the usual precedence, parentheses, unary minus
    - two-operand relational conditions (= < > <= >= <>)

ARCHITECTURAL RULE:
    Evaluation never raises to the caller.
    Anything that is not well-formed arithmetic degrades to 0,
    and a condition that cannot be parsed is simply false.
"""

import math
import re
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from basicv2.errors import ArithmeticSyntaxError

Variables = Dict[str, float]

_SINGLE_LETTER_RE = re.compile(r"\b([A-Z])\b")
_PURE_ARITHMETIC_RE = re.compile(r"^[0-9+\-*/().\s]+$")
_NUMBER_RE = re.compile(r"\d+(\.\d+)?")
_OPERATORS = "+-*/"
_NEGATE = "~"
_PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2, _NEGATE: 3}


class ComparisonOperator(Enum):
    """
    Relational operators understood by IF conditions.

    Two-character spellings must be tried before one-character ones,
    otherwise `<=` would be read as `<` followed by `=...`.
    """

    EQUALS = "="
    LESS_THAN = "<"
    GREATER_THAN = ">"
    LESS_EQUAL = "<="
    GREATER_EQUAL = ">="
    NOT_EQUALS = "<>"


_TWO_CHAR_OPERATORS = (
    ComparisonOperator.LESS_EQUAL,
    ComparisonOperator.GREATER_EQUAL,
    ComparisonOperator.NOT_EQUALS,
)
_ONE_CHAR_OPERATORS = (
    ComparisonOperator.EQUALS,
    ComparisonOperator.LESS_THAN,
    ComparisonOperator.GREATER_THAN,
)


def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0


def resolve_atom(atom: str, variables: Variables) -> float:
    """Resolve a bare variable letter or numeric literal; anything else is 0."""
    trimmed = atom.strip()
    if re.fullmatch(r"[A-Z]", trimmed):
        return variables.get(trimmed, 0)
    if not trimmed:
        return 0
    try:
        return _finite_or_zero(float(trimmed))
    except ValueError:
        return 0


def evaluate_arithmetic(source: str) -> float:
    """
    Evaluate pure arithmetic with an operator stack and an operand stack.

    `*` and `/` bind tighter than `+` and `-`. A `-` at the start, after
    `(` or after another operator is unary: an implicit 0 is pushed and
    subtracted with the highest precedence, so 3*-2 is -6.
    Division by zero yields 0.

    Raises:
        ArithmeticSyntaxError: If a character is neither operator,
            parenthesis nor number
    """
    s = re.sub(r"\s+", "", source or "")
    values: List[float] = []
    ops: List[str] = []

    def apply_top() -> None:
        op = ops.pop()
        b = values.pop() if values else 0
        a = values.pop() if values else 0
        if op == "+":
            values.append(a + b)
        elif op in ("-", _NEGATE):
            values.append(a - b)
        elif op == "*":
            values.append(a * b)
        elif op == "/":
            values.append(0 if b == 0 else a / b)

    i = 0
    while i < len(s):
        ch = s[i]
        if ch == "(":
            ops.append(ch)
            i += 1
            continue
        if ch == ")":
            while ops and ops[-1] != "(":
                apply_top()
            if ops and ops[-1] == "(":
                ops.pop()
            i += 1
            continue
        if ch in _OPERATORS:
            if ch == "-" and (i == 0 or s[i - 1] == "(" or s[i - 1] in _OPERATORS):
                # 0 ~ x binds tighter than any binary operator
                values.append(0)
                ops.append(_NEGATE)
                i += 1
                continue
            while ops and ops[-1] != "(" and _PRECEDENCE[ops[-1]] >= _PRECEDENCE[ch]:
                apply_top()
            ops.append(ch)
            i += 1
            continue

        match = _NUMBER_RE.match(s, i)
        if not match:
            raise ArithmeticSyntaxError(f"invalid arithmetic expression: {source!r}")
        values.append(float(match.group(0)))
        i = match.end()

    while ops:
        op = ops[-1]
        if op == "(":
            ops.pop()
            continue
        apply_top()
    return values.pop() if values else 0


def evaluate(expr: str, variables: Variables) -> float:
    """
    Evaluate a numeric expression against the variable store.

    Args:
        expr: Expression text, e.g. "(F-32)*5/9"
        variables: Variable store (not modified)

    Returns:
        Numeric value; 0 for anything that cannot be evaluated
    """
    text = (expr or "").strip()
    if not text:
        return 0

    expanded = _SINGLE_LETTER_RE.sub(lambda m: format_number(variables.get(m.group(1), 0)), text)
    if not _PURE_ARITHMETIC_RE.match(expanded):
        return resolve_atom(text, variables)
    try:
        return _finite_or_zero(evaluate_arithmetic(expanded))
    except ArithmeticSyntaxError:
        return 0


def split_condition(expr: str) -> Optional[Tuple[str, ComparisonOperator, str]]:
    """
    Find the first relational operator in a condition.

    Returns:
        (left, operator, right) or None when no operator splits the text
        into two non-empty sides
    """
    for i in range(1, len(expr)):
        for candidates in (_TWO_CHAR_OPERATORS, _ONE_CHAR_OPERATORS):
            for op in candidates:
                end = i + len(op.value)
                if expr.startswith(op.value, i) and end < len(expr):
                    return expr[:i], op, expr[end:]
    return None


def compare(left: float, op: ComparisonOperator, right: float) -> bool:
    if op is ComparisonOperator.EQUALS:
        return left == right
    if op is ComparisonOperator.LESS_THAN:
        return left < right
    if op is ComparisonOperator.GREATER_THAN:
        return left > right
    if op is ComparisonOperator.LESS_EQUAL:
        return left <= right
    if op is ComparisonOperator.GREATER_EQUAL:
        return left >= right
    return left != right


def evaluate_condition(expr: str, variables: Variables) -> bool:
    """Evaluate `left <op> right`; unparseable conditions are false."""
    parts = split_condition(expr or "")
    if parts is None:
        return False
    left, op, right = parts
    return compare(evaluate(left, variables), op, evaluate(right, variables))


def format_number(value: float) -> str:
    """
    Render a number the way PRINT shows it.

    Always positional (never exponent notation) and without a trailing
    `.0`, so the text can be substituted back into an expression.
    """
    if not isinstance(value, float):
        return str(value)
    if value.is_integer():
        return str(int(value))
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
