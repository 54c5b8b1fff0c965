"""CalcEngine protocol and result dataclasses."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gridcalc._utils import CellAddress


@dataclass(frozen=True)
class CellChange:
    """Outcome of writing one cell, as handed to the host's change callback."""

    address: CellAddress
    raw_value: Any
    value: Any  # number, text, or CellError
    # every cell re-evaluated by the write, in evaluation order
    recalculated: tuple[CellAddress, ...] = field(default=(), compare=False)

    @property
    def label(self) -> str:
        return self.address.label

    def as_tuple(self) -> tuple[CellAddress, Any, Any]:
        return (self.address, self.raw_value, self.value)


@dataclass(frozen=True)
class GridSnapshot:
    """Copies of the raw and evaluated matrices, detached from the engine."""

    raw: list[list[Any]]
    evaluated: list[list[Any]]

    @property
    def dimensions(self) -> tuple[int, int]:
        return (len(self.raw), len(self.raw[0]) if self.raw else 0)


@runtime_checkable
class CalcEngine(Protocol):
    """Protocol for grid recalculation engines."""

    def load(self, rows: Sequence[Sequence[Any]]) -> None:
        """Replace the grid wholesale and rebuild the dependency graph."""
        ...

    def evaluate_all(self) -> None:
        """Evaluate every cell, row-major."""
        ...

    def set_cell_value(self, address: CellAddress, raw_value: Any) -> CellChange:
        """Write one raw value and recompute the cell and its dependents."""
        ...

    def get_data(self) -> GridSnapshot:
        """Snapshot both matrices."""
        ...
