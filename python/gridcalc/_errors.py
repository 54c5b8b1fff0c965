"""Exceptions raised while parsing and evaluating formulas.

Every formula failure carries ``code``: the sentinel string written into the
evaluated grid when the failure is caught at the single-cell boundary.
"""

from __future__ import annotations


class FormulaError(Exception):
    """Base for all formula errors."""

    code: str = "#ERROR"

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class FormulaSyntaxError(FormulaError):
    """Unexpected character or mismatched parentheses."""


class InvalidReferenceError(FormulaError):
    """A label that does not match ``[A-Z]+[1-9][0-9]*``."""


class InvalidRangeError(FormulaError):
    """SUM bounds that cannot be decoded."""


class EvaluationError(FormulaError):
    """Stack machine failure: operands, references or division by zero."""


class CircularReferenceError(FormulaError):
    code = "#CIRC"
