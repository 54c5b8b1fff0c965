"""Formula parser: tokenizer, shunting-yard conversion and reference extraction."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from gridcalc._errors import FormulaError, FormulaSyntaxError, InvalidRangeError
from gridcalc._utils import CellAddress

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

NUMBER = "number"
CELL = "cell"
OPERATOR = "operator"
LPAREN = "lparen"
RPAREN = "rparen"

OPERATORS = frozenset("+-*/")
PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2}


@dataclass(frozen=True)
class Token:
    kind: str
    value: float | str

    def __repr__(self) -> str:
        return f"{self.kind}({self.value!r})"


def tokenize(body: str) -> Iterator[Token]:
    """Lex a formula body (no leading ``=``) into tokens.

    Lazy: a bad character raises FormulaSyntaxError only when the lexer
    reaches it.
    """
    i = 0
    length = len(body)
    while i < length:
        ch = body[i]
        if ch.isspace():
            i += 1
        elif ch in OPERATORS:
            yield Token(OPERATOR, ch)
            i += 1
        elif ch == "(":
            yield Token(LPAREN, ch)
            i += 1
        elif ch == ")":
            yield Token(RPAREN, ch)
            i += 1
        elif "A" <= ch <= "Z":
            start = i
            while i < length and "A" <= body[i] <= "Z":
                i += 1
            digits_start = i
            while i < length and "0" <= body[i] <= "9":
                i += 1
            if i == digits_start:
                raise FormulaSyntaxError(
                    f"Expected row number after {body[start:i]!r} at position {i}"
                )
            yield Token(CELL, body[start:i])
        elif "0" <= ch <= "9":
            start = i
            seen_point = False
            while i < length and ("0" <= body[i] <= "9" or (body[i] == "." and not seen_point)):
                if body[i] == ".":
                    seen_point = True
                i += 1
            yield Token(NUMBER, float(body[start:i]))
        else:
            raise FormulaSyntaxError(f"Unexpected character {ch!r} at position {i}")


# ---------------------------------------------------------------------------
# Shunting-yard
# ---------------------------------------------------------------------------


def to_postfix(tokens: Iterable[Token]) -> list[Token]:
    """Convert infix tokens to postfix (RPN).

    ``*`` and ``/`` bind tighter than ``+`` and ``-``; all operators are
    left-associative.
    """
    output: list[Token] = []
    stack: list[Token] = []

    for token in tokens:
        if token.kind in (NUMBER, CELL):
            output.append(token)
        elif token.kind == OPERATOR:
            prec = PRECEDENCE[token.value]
            while stack and stack[-1].kind == OPERATOR and PRECEDENCE[stack[-1].value] >= prec:
                output.append(stack.pop())
            stack.append(token)
        elif token.kind == LPAREN:
            stack.append(token)
        elif token.kind == RPAREN:
            while stack and stack[-1].kind != LPAREN:
                output.append(stack.pop())
            if not stack:
                raise FormulaSyntaxError("mismatched parentheses")
            stack.pop()

    while stack:
        token = stack.pop()
        if token.kind == LPAREN:
            raise FormulaSyntaxError("mismatched parentheses")
        output.append(token)

    return output


# ---------------------------------------------------------------------------
# Range calls: the whole body is FUNC(A1:B2)
# ---------------------------------------------------------------------------

_RANGE_CALL_RE = re.compile(r"^([A-Z]+)\(\s*([A-Z]+[0-9]+)\s*:\s*([A-Z]+[0-9]+)\s*\)$")


def match_range_call(body: str) -> tuple[str, str, str] | None:
    """If *body* is exactly ``NAME(start:end)``, return ``(name, start, end)``.

    Not composable: ``SUM(A1:A5)*2`` does not match.
    """
    m = _RANGE_CALL_RE.match(body.strip())
    if not m:
        return None
    return m.group(1), m.group(2), m.group(3)


def expand_range(start: CellAddress, end: CellAddress) -> list[CellAddress]:
    """Every address in the rectangle spanned by two corners, row-major."""
    r_min, r_max = min(start.row, end.row), max(start.row, end.row)
    c_min, c_max = min(start.col, end.col), max(start.col, end.col)
    return [
        CellAddress(r, c)
        for r in range(r_min, r_max + 1)
        for c in range(c_min, c_max + 1)
    ]


def range_bounds(start_label: str, end_label: str) -> tuple[CellAddress, CellAddress]:
    """Decode both corners of a range; raises InvalidRangeError."""
    try:
        return CellAddress.parse(start_label), CellAddress.parse(end_label)
    except FormulaError as e:
        raise InvalidRangeError(f"Invalid range {start_label}:{end_label}: {e}") from e


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def parse_references(body: str, max_rows: int | None = None, max_cols: int | None = None) -> list[str]:
    """Distinct labels a formula body reads, in order of first appearance.

    Range calls expand to every cell of the range, clipped to
    ``max_rows`` x ``max_cols`` when given. Raises FormulaSyntaxError for a
    body the tokenizer rejects; no partial result is returned.
    """
    call = match_range_call(body)
    if call is not None:
        _, start_label, end_label = call
        try:
            start, end = range_bounds(start_label, end_label)
        except InvalidRangeError:
            return []
        return [
            addr.label
            for addr in expand_range(start, end)
            if (max_rows is None or addr.row < max_rows)
            and (max_cols is None or addr.col < max_cols)
        ]

    tokens = list(tokenize(body))
    refs: list[str] = []
    seen: set[str] = set()
    for token in tokens:
        if token.kind == CELL and token.value not in seen:
            refs.append(token.value)
            seen.add(token.value)
    return refs
