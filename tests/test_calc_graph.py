"""Tests for gridcalc.calc dependency graph, cycle detection and ordering."""

from __future__ import annotations

from gridcalc._utils import CellAddress
from gridcalc.calc._graph import DependencyGraph, is_formula


def A(label: str) -> CellAddress:
    return CellAddress.parse(label)


def _chain(n: int) -> list[list[object]]:
    """Single column where each row reads the row above: A2=A1+1, ..."""
    return [[0]] + [[f"=A{i}+1"] for i in range(1, n)]


class TestFromRows:
    def test_forward_and_reverse_edges(self) -> None:
        g = DependencyGraph.from_rows([[2, "=A1*3", ""], ["=A1+B1", "", ""]])
        assert g.dependencies[A("B1")] == {A("A1")}
        assert g.dependencies[A("A2")] == {A("A1"), A("B1")}
        assert g.dependents[A("A1")] == {A("B1"), A("A2")}
        assert g.dependents[A("B1")] == {A("A2")}

    def test_every_cell_has_entries(self) -> None:
        g = DependencyGraph.from_rows([[1, 2, 3], [4, 5, "=A1"]])
        for r in range(2):
            for c in range(3):
                assert CellAddress(r, c) in g.dependencies
                assert CellAddress(r, c) in g.dependents
        assert g.dependencies[A("B1")] == set()

    def test_formulas_recorded(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1"]])
        assert g.formulas == {A("B1"): "=A1"}

    def test_malformed_formula_has_no_edges(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1+$"]])
        assert g.dependencies[A("B1")] == set()
        assert g.dependents[A("A1")] == set()
        assert A("B1") in g.formulas

    def test_sum_range_edges(self) -> None:
        g = DependencyGraph.from_rows([[1], [2], ["=SUM(A1:A2)"]])
        assert g.dependencies[A("A3")] == {A("A1"), A("A2")}
        assert g.dependents[A("A2")] == {A("A3")}

    def test_sum_range_clipped_to_grid(self) -> None:
        g = DependencyGraph.from_rows([[1, "=SUM(A1:Z99)"]])
        assert g.dependencies[A("B1")] == {A("A1"), A("B1")}

    def test_out_of_grid_reference(self) -> None:
        g = DependencyGraph.from_rows([["=Z99"]])
        assert g.dependencies[A("A1")] == {A("Z99")}
        assert g.dependents[A("Z99")] == {A("A1")}

    def test_is_formula(self) -> None:
        assert is_formula("=1")
        assert not is_formula("1")
        assert not is_formula(1)


class TestHasCycle:
    def test_two_cell_cycle(self) -> None:
        g = DependencyGraph.from_rows([["=B1", "=A1"]])
        assert g.has_cycle(A("A1"))
        assert g.has_cycle(A("B1"))

    def test_self_reference(self) -> None:
        g = DependencyGraph.from_rows([["=A1+1"]])
        assert g.has_cycle(A("A1"))

    def test_acyclic(self) -> None:
        g = DependencyGraph.from_rows([["=B1", "=C1", 5]])
        assert not g.has_cycle(A("A1"))
        assert not g.has_cycle(A("C1"))

    def test_diamond_is_not_a_cycle(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1+1", "=A1*2", "=B1+C1"]])
        assert not g.has_cycle(A("D1"))

    def test_cycle_reachable_downstream(self) -> None:
        """A1 is not on the B1<->C1 cycle but reads into it."""
        g = DependencyGraph.from_rows([["=B1", "=C1", "=B1"]])
        assert g.has_cycle(A("A1"))

    def test_long_chain_no_recursion_limit(self) -> None:
        g = DependencyGraph.from_rows(_chain(5000))
        assert not g.has_cycle(A("A5000"))

    def test_known_acyclic_cells_not_revisited(self) -> None:
        g = DependencyGraph.from_rows(_chain(10))
        acyclic: set[CellAddress] = set()
        assert not g.has_cycle(A("A5"), acyclic)
        assert acyclic == {A(f"A{i}") for i in range(1, 6)}
        assert not g.has_cycle(A("A10"), acyclic)
        assert len(acyclic) == 10

    def test_cells_finished_before_a_cycle_is_found_are_kept(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1", "=B1+D1", "=C1"]])
        acyclic: set[CellAddress] = set()
        assert g.has_cycle(A("C1"), acyclic)
        assert acyclic == {A("A1"), A("B1")}
        assert g.has_cycle(A("D1"), acyclic)


class TestDependentsOf:
    def test_transitive(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1", "=B1"]])
        assert g.dependents_of(A("A1")) == [A("B1"), A("C1")]

    def test_none(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1", 3]])
        assert g.dependents_of(A("C1")) == []

    def test_cycle_terminates(self) -> None:
        g = DependencyGraph.from_rows([["=B1", "=A1"]])
        assert g.dependents_of(A("A1")) == [A("B1")]


class TestTopologicalOrder:
    def test_empty(self) -> None:
        assert DependencyGraph().topological_order() == []

    def test_linear_chain(self) -> None:
        g = DependencyGraph.from_rows([["=B1*2", "=C1+1", 1]])
        order = g.topological_order()
        assert order.index(A("B1")) < order.index(A("A1"))

    def test_diamond(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1+1", "=A1*2", "=B1+C1"]])
        order = g.topological_order([A("D1"), A("C1"), A("B1")])
        assert order[-1] == A("D1")
        assert set(order) == {A("B1"), A("C1"), A("D1")}

    def test_cycle_members_appended(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1", "=D1", "=C1"]])
        order = g.topological_order([A("C1"), A("B1"), A("D1")])
        assert order == [A("B1"), A("C1"), A("D1")]


class TestAffectedCells:
    def test_single_change(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1+1", "=B1*2"]])
        assert g.affected_cells(A("A1")) == [A("B1"), A("C1")]

    def test_dependency_order_beats_bfs_order(self) -> None:
        """C1 reads A1 directly and through B1; it must come after B1."""
        g = DependencyGraph.from_rows([[1, "=B2", "=A1+B1"], ["", "=A1", ""]])
        # BFS from A1 reaches C1 and B2 first, B1 only through B2
        assert g.dependents_of(A("A1")) == [A("C1"), A("B2"), A("B1")]
        assert g.affected_cells(A("A1")) == [A("B2"), A("B1"), A("C1")]

    def test_unrelated_cells_not_affected(self) -> None:
        g = DependencyGraph.from_rows([[1, "=A1+1", 2, "=C1*2"]])
        affected = g.affected_cells(A("A1"))
        assert A("B1") in affected
        assert A("D1") not in affected
