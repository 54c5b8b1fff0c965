"""A1-style address helpers shared by the grid and the calc engine."""

from __future__ import annotations

import re
from dataclasses import dataclass

from gridcalc._errors import InvalidReferenceError

_A1_RE = re.compile(r"^([A-Z]+)([1-9][0-9]*)$")


def column_label(col: int) -> str:
    """0 -> "A", 25 -> "Z", 26 -> "AA" (bijective base-26)."""
    if col < 0:
        raise ValueError(f"Column index must be non-negative, got {col}")
    label = ""
    n = col + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def column_index(label: str) -> int:
    """Inverse of :func:`column_label`: "A" -> 0, "AA" -> 26."""
    n = 0
    for ch in label:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def a1_to_rowcol(ref: str) -> tuple[int, int]:
    """Convert "B3" into 0-based ``(row, col)`` -> ``(2, 1)``."""
    m = _A1_RE.fullmatch(ref)
    if not m:
        raise InvalidReferenceError(f"Invalid cell reference: {ref!r}")
    return int(m.group(2)) - 1, column_index(m.group(1))


def rowcol_to_a1(row: int, col: int) -> str:
    """Convert 0-based ``(row, col)`` into "B3"."""
    if row < 0:
        raise ValueError(f"Row index must be non-negative, got {row}")
    return f"{column_label(col)}{row + 1}"


@dataclass(frozen=True, order=True)
class CellAddress:
    """0-based cell coordinate. Orders row-major."""

    row: int
    col: int

    @classmethod
    def parse(cls, label: str) -> CellAddress:
        row, col = a1_to_rowcol(label)
        return cls(row, col)

    @property
    def label(self) -> str:
        return rowcol_to_a1(self.row, self.col)

    def __str__(self) -> str:
        return self.label


def parse_address(label: str) -> CellAddress:
    """Decode a label such as "AA12"; raises InvalidReferenceError."""
    return CellAddress.parse(label)


def format_address(address: CellAddress) -> str:
    return address.label
