"""GridEvaluator: postfix stack machine and incremental recalculation.

Formulas are tokenized, converted to postfix with the shunting-yard
algorithm and run on a small stack machine. A formula whose whole body is
``SUM(A1:B5)`` is dispatched to the range function instead.

Recalculation pulls inputs on demand: before a formula cell is computed,
every not-yet-computed cell it reads is computed first, deepest first, using
an explicit stack rather than recursion.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import Any, Callable

from gridcalc._errors import (
    CircularReferenceError,
    EvaluationError,
    FormulaError,
    FormulaSyntaxError,
)
from gridcalc._utils import CellAddress
from gridcalc.calc._functions import CellError, FunctionRegistry, is_error, to_number
from gridcalc.calc._graph import DependencyGraph, is_formula
from gridcalc.calc._parser import (
    CELL,
    NUMBER,
    OPERATOR,
    Token,
    expand_range,
    match_range_call,
    range_bounds,
    to_postfix,
    tokenize,
)
from gridcalc.calc._protocol import CellChange, GridSnapshot

logger = logging.getLogger(__name__)

# label -> evaluated value, or None when the label names no cell
Resolver = Callable[[str], Any]

_DEFAULT_FUNCTIONS = FunctionRegistry()


# ---------------------------------------------------------------------------
# Stack machine
# ---------------------------------------------------------------------------


def _binary_op(left: Any, op: str, right: Any) -> float | int:
    a = to_number(left)
    b = to_number(right)
    if op == '+':
        return a + b
    if op == '-':
        return a - b
    if op == '*':
        return a * b
    if op == '/':
        if b == 0:
            raise EvaluationError("Division by zero")
        return a / b
    raise EvaluationError(f"Unknown operator {op!r}")


def evaluate_postfix(postfix: Sequence[Token], resolve: Resolver) -> float | int:
    """Run a postfix token sequence and return its single numeric result."""
    stack: list[Any] = []

    for token in postfix:
        if token.kind == NUMBER:
            stack.append(token.value)
        elif token.kind == CELL:
            value = resolve(token.value)
            if value is None:
                raise EvaluationError(f"Cell {token.value} not found")
            if is_error(value):
                raise EvaluationError(f"Cell {token.value} has error: {value}")
            stack.append(value)
        elif token.kind == OPERATOR:
            if len(stack) < 2:
                raise EvaluationError("Invalid expression: missing operand")
            right = stack.pop()
            left = stack.pop()
            stack.append(_binary_op(left, token.value, right))
        else:
            raise EvaluationError(f"Unexpected token in postfix: {token!r}")

    if len(stack) != 1:
        raise EvaluationError(f"Invalid expression: {len(stack)} values left on stack")

    return to_number(stack[0])


def evaluate_formula(
    formula: str,
    resolve: Resolver,
    functions: FunctionRegistry | None = None,
) -> float | int:
    """Evaluate formula text (with its leading ``=``)."""
    if not formula.startswith('='):
        raise FormulaSyntaxError("Formula must start with =")
    body = formula[1:]

    call = match_range_call(body)
    if call is not None:
        name, start_label, end_label = call
        func = (functions or _DEFAULT_FUNCTIONS).get(name)
        if func is not None:
            start, end = range_bounds(start_label, end_label)
            return func([resolve(addr.label) for addr in expand_range(start, end)])

    return evaluate_postfix(to_postfix(tokenize(body)), resolve)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


def _normalize_rows(rows: Sequence[Sequence[Any]]) -> list[list[Any]]:
    """Copy *rows*, padding ragged rows with "" and storing None as ""."""
    width = max((len(row) for row in rows), default=0)
    out: list[list[Any]] = []
    for row in rows:
        copied = ["" if v is None else v for v in row]
        copied.extend([""] * (width - len(copied)))
        out.append(copied)
    return out


class GridEvaluator:
    """Owns one grid's raw and evaluated matrices and its dependency graph.

    Usage::

        ev = GridEvaluator()
        ev.load([[2, "=A1*3"]])
        ev.evaluate_all()
        change = ev.set_cell_value(CellAddress(0, 0), 5)
    """

    def __init__(self, functions: FunctionRegistry | None = None) -> None:
        self._raw: list[list[Any]] = []
        self._values: list[list[Any]] = []
        self._graph = DependencyGraph()
        self._functions = functions or FunctionRegistry()
        # cells still to be computed in the current pass
        self._pending: set[CellAddress] = set()
        # cells written during the current pass, in order
        self._trail: list[CellAddress] = []
        # cells proven to reach no cycle during the current pass
        self._acyclic: set[CellAddress] = set()
        self._loaded = False

    # ------------------------------------------------------------------
    # Grid state
    # ------------------------------------------------------------------

    @property
    def n_rows(self) -> int:
        return len(self._raw)

    @property
    def n_cols(self) -> int:
        return len(self._raw[0]) if self._raw else 0

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    def addresses(self) -> Iterator[CellAddress]:
        """Every address of the grid, row-major."""
        for r in range(self.n_rows):
            for c in range(self.n_cols):
                yield CellAddress(r, c)

    def in_bounds(self, address: CellAddress) -> bool:
        return 0 <= address.row < self.n_rows and 0 <= address.col < self.n_cols

    def _check(self, address: CellAddress) -> None:
        if not self._loaded:
            raise RuntimeError("Call load() before using the evaluator")
        if not self.in_bounds(address):
            raise IndexError(
                f"Cell ({address.row}, {address.col}) is outside the "
                f"{self.n_rows}x{self.n_cols} grid"
            )

    def raw_value(self, address: CellAddress) -> Any:
        self._check(address)
        return self._raw[address.row][address.col]

    def value(self, address: CellAddress) -> Any:
        """Evaluated value of a cell; None if it has never been evaluated."""
        self._check(address)
        return self._values[address.row][address.col]

    def load(self, rows: Sequence[Sequence[Any]]) -> None:
        """Replace the grid wholesale and rebuild the dependency graph.

        Evaluated values are cleared; call :meth:`evaluate_all` next.
        """
        self._raw = _normalize_rows(rows)
        self._values = [[None] * self.n_cols for _ in range(self.n_rows)]
        self._pending.clear()
        self._acyclic = set()
        self._loaded = True
        self._rebuild_graph()

    def _rebuild_graph(self) -> None:
        self._graph = DependencyGraph.from_rows(self._raw)

    def get_data(self) -> GridSnapshot:
        if not self._loaded:
            raise RuntimeError("Call load() before get_data()")
        return GridSnapshot(
            raw=[list(row) for row in self._raw],
            evaluated=[list(row) for row in self._values],
        )

    # ------------------------------------------------------------------
    # Evaluation passes
    # ------------------------------------------------------------------

    def evaluate_all(self) -> None:
        """Evaluate every cell, row-major."""
        if not self._loaded:
            raise RuntimeError("Call load() before evaluate_all()")
        self._pending = set(self.addresses())
        self._trail = []
        self._acyclic = set()
        for address in self.addresses():
            if address in self._pending:
                self.evaluate_cell(address)

    def set_cell_value(self, address: CellAddress, raw_value: Any) -> CellChange:
        """Write one raw value, rebuild the graph and recompute what it affects."""
        self._check(address)
        if raw_value is None:
            raw_value = ""
        self._raw[address.row][address.col] = raw_value
        self._rebuild_graph()
        recalculated = self.recalculate_cell(address)
        return CellChange(
            address=address,
            raw_value=raw_value,
            value=self._values[address.row][address.col],
            recalculated=recalculated,
        )

    def recalculate_cell(self, address: CellAddress) -> tuple[CellAddress, ...]:
        """Re-evaluate *address* and every cell that transitively reads it.

        Dependents run in topological order, each at most once. Returns the
        cells written, in order.
        """
        self._check(address)
        affected = [c for c in self._graph.affected_cells(address) if self.in_bounds(c)]
        self._pending = {address, *affected}
        self._trail = []
        self._acyclic = set()

        self.evaluate_cell(address)
        for cell in affected:
            if cell in self._pending:
                self.evaluate_cell(cell)

        return tuple(self._trail)

    def evaluate_cell(self, address: CellAddress) -> Any:
        """Evaluate one cell and store the result.

        Literals are copied verbatim. A formula with a cycle reachable from it
        becomes ``#CIRC`` without being parsed; any other formula failure
        becomes ``#ERROR``.
        """
        self._check(address)
        raw = self._raw[address.row][address.col]
        if not is_formula(raw):
            return self._store(address, raw)

        if self._graph.has_cycle(address, self._acyclic):
            err = CircularReferenceError(f"Cycle reachable from {address}")
            logger.debug("Cannot evaluate formula %r in %s: %s", raw, address, err)
            return self._store(address, CellError.of(err.code))

        for dep in self._stale_inputs(address):
            self._compute(dep)
        return self._compute(address)

    def _stale_inputs(self, address: CellAddress) -> list[CellAddress]:
        """Pending cells *address* reads, transitively, deepest first.

        Only valid once no cycle is reachable from *address*.
        """
        order: list[CellAddress] = []
        seen: set[CellAddress] = {address}
        stack: list[tuple[CellAddress, Iterator[CellAddress]]] = [
            (address, iter(sorted(self._graph.dependencies.get(address, ())))),
        ]
        while stack:
            cell, neighbors = stack[-1]
            for nxt in neighbors:
                if nxt in seen or nxt not in self._pending:
                    continue
                seen.add(nxt)
                stack.append((nxt, iter(sorted(self._graph.dependencies.get(nxt, ())))))
                break
            else:
                stack.pop()
                if cell != address:
                    order.append(cell)
        return order

    def _compute(self, address: CellAddress) -> Any:
        raw = self._raw[address.row][address.col]
        if not is_formula(raw):
            return self._store(address, raw)
        try:
            value = evaluate_formula(raw, self._resolve, self._functions)
        except FormulaError as e:
            logger.debug("Cannot evaluate formula %r in %s: %s", raw, address, e)
            value = CellError.of(e.code)
        return self._store(address, value)

    def _store(self, address: CellAddress, value: Any) -> Any:
        self._values[address.row][address.col] = value
        self._pending.discard(address)
        self._trail.append(address)
        return value

    def _resolve(self, label: str) -> Any:
        try:
            address = CellAddress.parse(label)
        except FormulaError:
            return None
        if not self.in_bounds(address):
            return None
        if address in self._pending:
            self.evaluate_cell(address)
        return self._values[address.row][address.col]
