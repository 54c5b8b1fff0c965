"""Dependency graph for formula cells: cycle detection and recalculation order."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from gridcalc._errors import FormulaError
from gridcalc._utils import CellAddress
from gridcalc.calc._parser import parse_references

logger = logging.getLogger(__name__)


def is_formula(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("=")


class DependencyGraph:
    """Tracks which cells each formula reads and which formulas read each cell.

    Every address of the grid it was built from has an entry in both maps,
    possibly empty. Referenced addresses outside the grid get entries too.
    """

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[CellAddress, set[CellAddress]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[CellAddress, set[CellAddress]] = {}
        # cell -> formula string
        self.formulas: dict[CellAddress, str] = {}

    def add_cell(self, address: CellAddress) -> None:
        self.dependencies.setdefault(address, set())
        self.dependents.setdefault(address, set())

    def add_formula(
        self,
        address: CellAddress,
        formula: str,
        max_rows: int | None = None,
        max_cols: int | None = None,
    ) -> None:
        """Register a formula cell and its dependencies.

        A formula that fails to tokenize contributes no edges.
        """
        self.add_cell(address)
        self.formulas[address] = formula
        try:
            labels = parse_references(formula[1:], max_rows, max_cols)
        except FormulaError as e:
            logger.debug("No dependencies for %s (%r): %s", address, formula, e)
            return

        for label in labels:
            try:
                ref = CellAddress.parse(label)
            except FormulaError:
                logger.debug("Skipping invalid reference %r in %s", label, address)
                continue
            self.add_cell(ref)
            self.dependencies[address].add(ref)
            self.dependents[ref].add(address)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Any]]) -> DependencyGraph:
        """Build the full graph from a row-major matrix of raw values."""
        graph = cls()
        n_rows = len(rows)
        n_cols = len(rows[0]) if rows else 0
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                address = CellAddress(r, c)
                if is_formula(value):
                    graph.add_formula(address, value, n_rows, n_cols)
                else:
                    graph.add_cell(address)
        return graph

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _reads(self, address: CellAddress) -> Iterator[CellAddress]:
        return iter(sorted(self.dependencies.get(address, ())))

    def has_cycle(self, start: CellAddress, acyclic: set[CellAddress] | None = None) -> bool:
        """True if a cycle is reachable from *start* along forward edges.

        Iterative DFS: ``on_path`` holds the current exploration path,
        ``visited`` the fully explored cells. *acyclic*, when given, holds
        cells already known to reach no cycle; they are not explored again,
        and every cell this search fully explores is added to it.
        """
        visited: set[CellAddress] = set() if acyclic is None else acyclic
        if start in visited:
            return False
        on_path: set[CellAddress] = {start}
        stack: list[tuple[CellAddress, Iterator[CellAddress]]] = [(start, self._reads(start))]

        while stack:
            cell, neighbors = stack[-1]
            for nxt in neighbors:
                if nxt in on_path:
                    return True
                if nxt not in visited:
                    on_path.add(nxt)
                    stack.append((nxt, self._reads(nxt)))
                    break
            else:
                stack.pop()
                on_path.discard(cell)
                visited.add(cell)

        return False

    def dependents_of(self, start: CellAddress) -> list[CellAddress]:
        """All cells that transitively read *start*, in BFS order."""
        found: list[CellAddress] = []
        visited: set[CellAddress] = {start}
        queue: deque[CellAddress] = deque([start])

        while queue:
            cell = queue.popleft()
            for dep in sorted(self.dependents.get(cell, ())):
                if dep not in visited:
                    visited.add(dep)
                    found.append(dep)
                    queue.append(dep)

        return found

    def topological_order(self, cells: Iterable[CellAddress] | None = None) -> list[CellAddress]:
        """Order *cells* so each comes after the cells it reads (Kahn's algorithm).

        Only edges between members of *cells* count; defaults to all formula
        cells. Cells left over because they sit on or behind a cycle are
        appended in their given order.
        """
        members = list(self.formulas) if cells is None else list(cells)
        member_set = set(members)

        in_degree: dict[CellAddress, int] = {
            cell: len(self.dependencies.get(cell, set()) & member_set) for cell in members
        }
        queue: deque[CellAddress] = deque(c for c in members if in_degree[c] == 0)

        order: list[CellAddress] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in sorted(self.dependents.get(cell, ())):
                if dep in member_set:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        if len(order) != len(members):
            placed = set(order)
            order.extend(c for c in members if c not in placed)

        return order

    def affected_cells(self, changed: CellAddress) -> list[CellAddress]:
        """Transitive dependents of *changed*, in evaluation order."""
        return self.topological_order(self.dependents_of(changed))
