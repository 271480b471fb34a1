"""Tests for DAG validation and topological ordering."""

import pytest

from taskswarm.core.domain.models import Order, SelectedAgent, Task
from taskswarm.core.planning.dag import remediation_hint, topological_order, validate_dag


def _plan(*edges):
    """Build tasks from (id, deps) tuples."""
    return [Task(id=i, title=i, depends_on=tuple(d)) for i, d in edges]


class TestValidateDag:
    """Tests for validate_dag error codes."""

    def test_valid_chain(self):
        plan = _plan(("P1", []), ("P2", ["P1"]), ("P3", ["P2"]))
        result = validate_dag([SelectedAgent("a", "r")], plan, [Order("O1", "a")])
        assert result.ok
        assert result.error is None

    def test_empty_plan(self):
        assert validate_dag([], [], []).error == "empty_plan"

    def test_missing_task_id(self):
        assert validate_dag([], [Task(id="", title="x")], []).error == "missing_task_id"

    def test_unknown_dependency(self):
        """Dependencies must name tasks in the same plan."""
        plan = _plan(("A", ["Z"]))
        assert validate_dag([], plan, []).error == "unknown_dep:Z"

    def test_unknown_agent(self):
        """Orders must reference selected agents when a selection is given."""
        plan = _plan(("P1", []))
        result = validate_dag([SelectedAgent("a", "r")], plan, [Order("O1", "ghost")])
        assert result.error == "unknown_agent:ghost"

    def test_empty_selection_skips_membership(self):
        """With no selection any non-empty agent id is accepted."""
        plan = _plan(("P1", []))
        assert validate_dag([], plan, [Order("O1", "anyone")]).ok

    def test_empty_agent_id_always_fails(self):
        plan = _plan(("P1", []))
        assert validate_dag([], plan, [Order("O1", "")]).error == "unknown_agent:nil"

    def test_duplicate_task_id(self):
        """A repeated id is rejected even when the graph is otherwise a valid chain."""
        plan = [Task("A", "x"), Task("A", "y")]
        assert validate_dag([], plan, []).error == "duplicate_task_id:A"

    def test_duplicate_reported_before_unknown_dep(self):
        plan = _plan(("A", []), ("B", ["Z"]), ("A", ["B"]))
        assert validate_dag([], plan, []).error == "duplicate_task_id:A"

    def test_cycle_detected(self):
        plan = _plan(("A", ["C"]), ("B", ["A"]), ("C", ["B"]))
        assert validate_dag([], plan, []).error == "cycle_detected"

    def test_first_failing_check_wins(self):
        """An unknown dependency is reported before an unknown agent."""
        plan = _plan(("A", ["Z"]))
        result = validate_dag([SelectedAgent("a", "r")], plan, [Order("O1", "ghost")])
        assert result.error == "unknown_dep:Z"


class TestTopologicalOrder:
    def test_dependencies_come_first(self):
        plan = _plan(("C", ["A", "B"]), ("A", []), ("B", ["A"]))
        order = topological_order(plan)
        assert order.index("A") < order.index("B") < order.index("C")

    def test_cycle_raises(self):
        with pytest.raises(ValueError, match="cycle_detected"):
            topological_order(_plan(("A", ["B"]), ("B", ["A"])))

    def test_duplicate_raises(self):
        with pytest.raises(ValueError, match="duplicate_task_id:A"):
            topological_order([Task("A", "x"), Task("A", "y")])

    def test_unknown_dependency_raises(self):
        with pytest.raises(ValueError, match="unknown_dep:Z"):
            topological_order(_plan(("A", ["Z"])))


class TestRemediationHint:
    @pytest.mark.parametrize(
        "error, fragment",
        [
            ("unknown_dep:Z", "dependsOn"),
            ("unknown_agent:x", "selected agents"),
            ("cycle_detected", "cyclic"),
            ("empty_plan", "at least one task"),
            ("missing_task_id", "unique IDs"),
            ("duplicate_task_id:A", "unique ID"),
            ("other", "Review plan structure"),
        ],
    )
    def test_hints(self, error, fragment):
        assert fragment in remediation_hint(error)
