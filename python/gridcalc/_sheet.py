"""Sheet: the host-facing grid. Provides ``sheet['A1']`` access and change callbacks."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any, Callable, Union

from gridcalc._utils import CellAddress
from gridcalc.calc._evaluator import GridEvaluator
from gridcalc.calc._protocol import CellChange, GridSnapshot

AddressLike = Union[CellAddress, tuple[int, int], str]
ChangeCallback = Callable[[CellAddress, Any, Any], None]


def to_address(key: AddressLike) -> CellAddress:
    """Accept a CellAddress, a 0-based ``(row, col)`` tuple or an A1 label."""
    if isinstance(key, CellAddress):
        return key
    if isinstance(key, str):
        return CellAddress.parse(key)
    row, col = key
    return CellAddress(row, col)


class Sheet:
    """A rectangular grid of raw values and their evaluated results.

    Usage::

        sheet = Sheet(initial_data=[[2, "=A1*3"]])
        sheet["B1"]                  # 6.0
        sheet.set_cell_value("A1", 5)
        sheet["B1"]                  # 15.0

    ``initial_data`` takes precedence over ``rows``/``cols``. ``rows`` and ``cols``
    must both be positive, or both zero for an empty grid. ``on_change`` is
    called with ``(address, raw_value, evaluated_value)`` after every
    :meth:`set_cell_value`.
    """

    __slots__ = ("_evaluator", "_on_change")

    def __init__(
        self,
        rows: int = 10,
        cols: int = 10,
        initial_data: Sequence[Sequence[Any]] | None = None,
        on_change: ChangeCallback | None = None,
    ) -> None:
        self._evaluator = GridEvaluator()
        self._on_change = on_change
        if initial_data is not None:
            self.set_data(initial_data)
        else:
            if rows < 0 or cols < 0:
                raise ValueError(f"Grid dimensions must be non-negative, got {rows}x{cols}")
            if (rows == 0) != (cols == 0):
                raise ValueError(f"An empty grid has no rows and no columns, got {rows}x{cols}")
            self.set_data([[""] * cols for _ in range(rows)])

    @property
    def dimensions(self) -> tuple[int, int]:
        return (self._evaluator.n_rows, self._evaluator.n_cols)

    @property
    def evaluator(self) -> GridEvaluator:
        return self._evaluator

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def __getitem__(self, key: AddressLike) -> Any:
        """``sheet['A1']`` -> evaluated value."""
        return self._evaluator.value(to_address(key))

    def __setitem__(self, key: AddressLike, value: Any) -> None:
        """``sheet['A1'] = 42`` - shorthand for :meth:`set_cell_value`."""
        self.set_cell_value(key, value)

    def raw(self, key: AddressLike) -> Any:
        return self._evaluator.raw_value(to_address(key))

    def set_cell_value(self, key: AddressLike, raw_value: Any) -> CellChange:
        """Write one cell, recompute it and its dependents, notify the host."""
        change = self._evaluator.set_cell_value(to_address(key), raw_value)
        if self._on_change is not None:
            self._on_change(change.address, change.raw_value, change.value)
        return change

    # ------------------------------------------------------------------
    # Bulk access
    # ------------------------------------------------------------------

    def get_data(self) -> GridSnapshot:
        return self._evaluator.get_data()

    def set_data(self, rows: Sequence[Sequence[Any]]) -> None:
        """Replace every cell, rebuild the graph and evaluate the whole grid."""
        self._evaluator.load(rows)
        self._evaluator.evaluate_all()

    def iter_rows(self, values_only: bool = True) -> Iterator[tuple[Any, ...]]:
        """Yield evaluated rows, or raw rows when ``values_only`` is False."""
        snapshot = self.get_data()
        source = snapshot.evaluated if values_only else snapshot.raw
        for row in source:
            yield tuple(row)

    def __repr__(self) -> str:
        n_rows, n_cols = self.dimensions
        return f"<Sheet {n_rows}x{n_cols}>"
