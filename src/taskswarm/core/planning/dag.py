"""
DAG Validator

Structural check of a planning artifact. Errors are returned as short
machine-readable codes, never raised:

    empty_plan, missing_task_id, duplicate_task_id:<id>, unknown_dep:<id>,
    unknown_agent:<id|nil>, cycle_detected

The first failing check wins.
"""

from collections import deque
from typing import Iterable, Sequence

from taskswarm.core.domain.models import Order, SelectedAgent, Task, ValidationResult


def _kahn(plan: Sequence[Task]) -> list[str] | None:
    """Topological order of task ids, or None when a cycle remains."""
    in_degree = {t.id: 0 for t in plan}
    dependents: dict[str, list[str]] = {t.id: [] for t in plan}
    for task in plan:
        for dep in task.depends_on:
            dependents[dep].append(task.id)
            in_degree[task.id] += 1

    queue = deque(tid for tid, degree in in_degree.items() if degree == 0)
    order: list[str] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for nxt in dependents[current]:
            in_degree[nxt] -= 1
            if in_degree[nxt] == 0:
                queue.append(nxt)
    # duplicate ids collapse into one node
    return order if len(order) == len(plan) else None


def validate_dag(
    agents: Iterable[SelectedAgent],
    plan: Sequence[Task],
    orders: Iterable[Order],
) -> ValidationResult:
    if not plan:
        return ValidationResult(False, "empty_plan")

    ids: set[str] = set()
    for task in plan:
        if not task.id:
            return ValidationResult(False, "missing_task_id")
        if task.id in ids:
            return ValidationResult(False, f"duplicate_task_id:{task.id}")
        ids.add(task.id)
    for task in plan:
        for dep in task.depends_on:
            if dep not in ids:
                return ValidationResult(False, f"unknown_dep:{dep}")

    # membership is only checked when a selection was supplied
    selected = {a.id for a in agents}
    for order in orders:
        if not order.agent_id or (selected and order.agent_id not in selected):
            return ValidationResult(False, f"unknown_agent:{order.agent_id or 'nil'}")

    if _kahn(plan) is None:
        return ValidationResult(False, "cycle_detected")
    return ValidationResult(True)


def topological_order(plan: Sequence[Task]) -> list[str]:
    """
    Return task ids in an order where every task follows its dependencies.

    Raises:
        ValueError: If an id repeats, a dependency is unresolved or the graph
            has a cycle.
    """
    ids: set[str] = set()
    for task in plan:
        if task.id in ids:
            raise ValueError(f"duplicate_task_id:{task.id}")
        ids.add(task.id)
    for task in plan:
        for dep in task.depends_on:
            if dep not in ids:
                raise ValueError(f"unknown_dep:{dep}")
    order = _kahn(plan)
    if order is None:
        raise ValueError("cycle_detected")
    return order


def remediation_hint(error: str | None) -> str:
    """Human-readable fix suggestion for a validation error code."""
    code = str(error or "")
    if code.startswith("unknown_dep:"):
        return "Fix dependsOn to reference existing task IDs (or remove the bad edge)."
    if code.startswith("unknown_agent:"):
        return "Ensure orders reference selected agents only, or include the agent in selection."
    if code == "cycle_detected":
        return "Remove cyclic dependencies so tasks can be topologically ordered."
    if code == "empty_plan":
        return "Provide at least one task in the plan or switch to the heuristic decomposer."
    if code == "missing_task_id":
        return "Assign unique IDs to all plan tasks."
    if code.startswith("duplicate_task_id:"):
        return "Give every plan task a unique ID."
    return "Review plan structure for invalid dependencies or references."
