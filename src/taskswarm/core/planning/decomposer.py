"""
Decomposer

Turns a goal plus the selected agents into a plan (a small dependency graph
of tasks) and one order per agent.

The heuristic and rule-based variants always produce the same three-step
skeleton. The delegated variant asks a generative backend, validates the
answer, retries exactly once with the validation error as a hint, and falls
back to the heuristic skeleton when that still fails.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Sequence

import structlog

from taskswarm.core.domain.models import (
    AgentDescriptor,
    Decomposition,
    Order,
    SelectedAgent,
    Task,
    ValidationResult,
)
from taskswarm.core.interfaces import GenerationBackend
from taskswarm.core.planning.fallback import Attempt, AttemptRejected, FallbackChain
from taskswarm.core.planning.prompts import build_decomposer_prompts, strict_validation_hint
from taskswarm.core.planning.selector import PlanningMode, RuleBasedSelector, SelectionBounds

logger = structlog.get_logger()

GENERIC_OBJECTIVE = "Execute role-specific tasks for the goal"
GENERIC_CONSTRAINT = "Follow policy/timeouts"
GENERIC_OUTPUT = "Summary, files if applicable"

# (pattern over agent id, objective); first match wins
ROLE_OBJECTIVES: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"architect", re.I), "Propose architecture and constraints"),
    (re.compile(r"backend", re.I), "Design and implement API endpoints"),
    (re.compile(r"coder|frontend", re.I), "Implement frontend/UI components"),
    (re.compile(r"api-docs|docs", re.I), "Write/Update API documentation"),
    (re.compile(r"tester", re.I), "Write tests and smoke flows"),
)


def _is_plain_id(value: Any) -> bool:
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def validate_decompose(obj: Any) -> ValidationResult:
    """
    Schema and closure check for a raw `{plan, orders}` object.

    Checks that plan and orders are lists, the plan is non-empty, task ids
    are plain and unique, every dependsOn entry names a task in the same plan
    and every order carries an agent_id. Cycles are not detected here;
    `validate_dag` does that. Never raises.
    """
    if not isinstance(obj, dict):
        return ValidationResult(False, "not an object")
    plan, orders = obj.get("plan"), obj.get("orders")
    if not isinstance(plan, list) or not isinstance(orders, list):
        return ValidationResult(False, "missing arrays")
    if not plan:
        return ValidationResult(False, "empty plan")

    ids: set[str] = set()
    for task in plan:
        if not isinstance(task, dict):
            return ValidationResult(False, "task is not an object")
        task_id = task.get("id")
        if task_id is None:
            continue
        if not _is_plain_id(task_id):
            return ValidationResult(False, f"invalid task id: {task_id!r}")
        if str(task_id) in ids:
            return ValidationResult(False, f"duplicate task id: {task_id}")
        ids.add(str(task_id))

    for task in plan:
        deps = task.get("dependsOn") or []
        if not isinstance(deps, list):
            return ValidationResult(False, f"dependsOn is not a list: {task.get('id')}")
        for dep in deps:
            if not _is_plain_id(dep):
                return ValidationResult(False, f"invalid dependsOn: {dep!r}")
            if str(dep) not in ids:
                return ValidationResult(False, f"unknown dependsOn: {dep}")
    for order in orders:
        if not isinstance(order, dict) or not order.get("agent_id"):
            return ValidationResult(False, "order missing agent_id")
    return ValidationResult(True)


def skeleton_plan(titles: tuple[str, str, str]) -> tuple[Task, ...]:
    """Three-step chain P1 -> P2 -> P3; P2 and P3 parallelizable."""
    return (
        Task(id="P1", title=titles[0], depends_on=(), parallelizable=False),
        Task(id="P2", title=titles[1], depends_on=("P1",), parallelizable=True),
        Task(id="P3", title=titles[2], depends_on=("P2",), parallelizable=True),
    )


def role_objective(agent_id: str) -> str:
    for pattern, objective in ROLE_OBJECTIVES:
        if pattern.search(agent_id):
            return objective
    return GENERIC_OBJECTIVE


def _order(index: int, agent_id: str, objective: str) -> Order:
    return Order(
        order_id=f"O{index}",
        agent_id=agent_id,
        objectives=(objective,),
        constraints=(GENERIC_CONSTRAINT,),
        expected_outputs=(GENERIC_OUTPUT,),
        handoff=(),
    )


class DecomposerStrategy(ABC):
    """Base class for decomposition strategies."""

    mode: PlanningMode

    @abstractmethod
    async def decompose(
        self,
        goal: str,
        agents: Sequence[SelectedAgent],
        catalog: Sequence[AgentDescriptor],
    ) -> Decomposition:
        pass


class HeuristicDecomposer(DecomposerStrategy):
    mode = PlanningMode.HEURISTIC

    async def decompose(self, goal, agents, catalog):
        orders = tuple(_order(i, a.id, GENERIC_OBJECTIVE) for i, a in enumerate(agents, start=1))
        return Decomposition(plan=skeleton_plan(("Plan", "Execute", "Test & Validate")), orders=orders)


class RuleBasedDecomposer(DecomposerStrategy):
    """Same skeleton as the heuristic, with role-specific objectives."""

    mode = PlanningMode.RULE_BASED

    def __init__(self, selector: RuleBasedSelector | None = None, bounds: SelectionBounds | None = None):
        self.selector = selector or RuleBasedSelector()
        self.bounds = bounds or SelectionBounds()

    async def decompose(self, goal, agents, catalog):
        if not agents:
            agents = await self.selector.select(goal, list(catalog), self.bounds)
        orders = tuple(_order(i, a.id, role_objective(a.id)) for i, a in enumerate(agents, start=1))
        return Decomposition(
            plan=skeleton_plan(("Plan/Design", "Implement/Build", "Test/Validate")),
            orders=orders,
        )


class DelegatedDecomposer(DecomposerStrategy):
    """
    Delegates decomposition to a generative backend.

    Attempts, in order: generate; regenerate once with a strict validation
    hint naming the first attempt's error; heuristic skeleton. A backend that
    raises (e.g. none configured) skips straight to the heuristic.
    """

    mode = PlanningMode.DELEGATED

    def __init__(self, backend: GenerationBackend, fallback: DecomposerStrategy | None = None):
        self.backend = backend
        self.fallback = fallback or HeuristicDecomposer()

    async def _generate(self, goal, agents, catalog, retry_hint: str = "") -> dict[str, Any]:
        system, user = build_decomposer_prompts(goal, [a.id for a in agents], catalog, retry_hint)
        return await self.backend.generate_json(system, user)

    async def decompose(self, goal, agents, catalog):
        agents, catalog = list(agents), list(catalog)
        state: dict[str, Any] = {}

        async def first() -> Decomposition:
            data = await self._generate(goal, agents, catalog)
            result = validate_decompose(data)
            if not result.ok:
                state["error"] = result.error
                raise AttemptRejected(f"invalid decomposition: {result.error}", data)
            return Decomposition.from_dict(data)

        async def retry() -> Decomposition:
            if "error" not in state:
                raise AttemptRejected("first attempt failed before validation")
            data = await self._generate(goal, agents, catalog, strict_validation_hint(state["error"]))
            result = validate_decompose(data)
            if not result.ok:
                raise AttemptRejected(f"invalid decomposition after retry: {result.error}", data)
            return Decomposition.from_dict(data)

        chain = FallbackChain(
            [
                Attempt("delegated", first),
                Attempt("delegated_retry", retry),
                Attempt("heuristic", lambda: self.fallback.decompose(goal, agents, catalog)),
            ],
            component="delegated_decomposer",
        )
        outcome = await chain.run()
        return outcome.value


def create_decomposer(mode: "str | PlanningMode", backend: GenerationBackend | None = None) -> DecomposerStrategy:
    parsed = PlanningMode.parse(mode)
    if parsed is PlanningMode.RULE_BASED:
        return RuleBasedDecomposer()
    if parsed is PlanningMode.DELEGATED:
        if backend is None:
            raise ValueError("Delegated decomposition requires a generation backend")
        return DelegatedDecomposer(backend)
    return HeuristicDecomposer()


async def decompose(
    goal: str,
    agents: Sequence[SelectedAgent],
    catalog: Sequence[AgentDescriptor],
    mode: "str | PlanningMode" = PlanningMode.HEURISTIC,
    backend: GenerationBackend | None = None,
) -> Decomposition:
    """Functional entry point: decompose a goal for the selected agents."""
    strategy = create_decomposer(mode, backend)
    result = await strategy.decompose(goal, list(agents), list(catalog))
    logger.info(
        "decomposer.generated",
        mode=strategy.mode.value,
        plan=len(result.plan),
        orders=len(result.orders),
    )
    return result
