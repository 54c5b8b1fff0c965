"""gridcalc - a headless spreadsheet formula core.

Usage::

    from gridcalc import Sheet

    sheet = Sheet(rows=5, cols=5)
    sheet["A1"] = 2
    sheet["B1"] = "=A1*3"
    print(sheet["B1"])           # 6.0

    data = sheet.get_data()      # raw + evaluated copies
"""

from gridcalc._errors import (
    CircularReferenceError,
    EvaluationError,
    FormulaError,
    FormulaSyntaxError,
    InvalidRangeError,
    InvalidReferenceError,
)
from gridcalc._sheet import Sheet
from gridcalc._utils import CellAddress, column_label, format_address, parse_address
from gridcalc.calc import CellChange, CellError, GridSnapshot

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CellAddress",
    "CellChange",
    "CellError",
    "CircularReferenceError",
    "EvaluationError",
    "FormulaError",
    "FormulaSyntaxError",
    "GridSnapshot",
    "InvalidRangeError",
    "InvalidReferenceError",
    "Sheet",
    "column_label",
    "format_address",
    "parse_address",
]
