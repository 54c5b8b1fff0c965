"""Error sentinels, numeric coercion and the range function registry."""

from __future__ import annotations

import re
from typing import Any, Callable

from gridcalc._errors import EvaluationError

# plain decimal text: optional sign, ASCII digits, at most one point
_DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


# ---------------------------------------------------------------------------
# CellError: tagged sentinel values stored in the evaluated grid
# ---------------------------------------------------------------------------


class CellError:
    """Sentinel for a failed evaluation.

    Use ``CellError.of(code)`` to get the cached singleton for a code.
    Sentinels compare equal to their string code (``CellError.ERROR == "#ERROR"``)
    but only :func:`is_error` identifies one, so a text cell that happens to
    read ``"#ERROR"`` is never treated as a failure.
    """

    __slots__ = ("code",)
    _cache: dict[str, CellError] = {}

    ERROR: CellError
    CIRC: CellError

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> CellError:
        canon = code.upper()
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CellError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


# Singletons
CellError.ERROR = CellError.of("#ERROR")
CellError.CIRC = CellError.of("#CIRC")


def is_error(val: Any) -> bool:
    """Return True if *val* is a CellError instance."""
    return isinstance(val, CellError)


# ---------------------------------------------------------------------------
# Numeric coercion
# ---------------------------------------------------------------------------


def is_blank(val: Any) -> bool:
    return val is None or (isinstance(val, str) and not val.strip())


def coerce_number(val: Any) -> float | int | None:
    """Best-effort numeric view of a cell value, or None.

    Blank cells read as 0 and plain decimal text (``"12"``, ``"-4.5"``) is
    parsed. Booleans, sentinels and other text, including ``"nan"``,
    ``"inf"``, ``"1e3"`` and ``"1_000"``, have no numeric value.
    """
    if isinstance(val, bool) or isinstance(val, CellError):
        return None
    if isinstance(val, (int, float)):
        return val
    if is_blank(val):
        return 0
    if isinstance(val, str):
        text = val.strip()
        if _DECIMAL_RE.fullmatch(text):
            return float(text)
        return None
    return None


def to_number(val: Any) -> float | int:
    """Like :func:`coerce_number` but raises EvaluationError on failure."""
    num = coerce_number(val)
    if num is None:
        raise EvaluationError(f"Non-numeric operand: {val!r}")
    return num


# ---------------------------------------------------------------------------
# Builtin range functions
# ---------------------------------------------------------------------------


def _builtin_sum(values: list[Any]) -> float:
    """Sum a range. Cells without a numeric value contribute 0."""
    total = 0.0
    for v in values:
        num = coerce_number(v)
        if num is not None:
            total += num
    return total


_BUILTINS: dict[str, Callable[[list[Any]], Any]] = {
    "SUM": _builtin_sum,
}


class FunctionRegistry:
    """Registry of the range functions a formula may consist of.

    A range function receives the values of every cell in its range, in
    row-major order, and returns a number.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[list[Any]], Any]] = dict(_BUILTINS)

    def get(self, name: str) -> Callable[[list[Any]], Any] | None:
        return self._functions.get(name.upper())
