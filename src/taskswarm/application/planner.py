"""
Application Layer - Planning Service

Runs the planning pipeline for one goal:

    (router pre-filter) -> select -> decompose -> validate -> compose

Every stage is timed and recorded in the event log. A structurally invalid
plan does not stop composition; the scenario carries `meta.dag` so callers
can decide whether to execute it.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import structlog

from taskswarm.core.domain.events import Event, EventKind
from taskswarm.core.domain.models import (
    AgentDescriptor,
    PlanningArtifact,
    Scenario,
    SelectedAgent,
    ValidationResult,
)
from taskswarm.core.interfaces import GenerationBackend
from taskswarm.core.planning.composer import compose
from taskswarm.core.planning.dag import validate_dag
from taskswarm.core.planning.decomposer import create_decomposer
from taskswarm.core.planning.selector import AgentSelector, PlanningMode, SelectionBounds, create_selector
from taskswarm.core.routing.router import RouteResult, Router
from taskswarm.infrastructure.persistence.event_log import EventLog

logger = structlog.get_logger()


@dataclass
class PlanningRun:
    """Everything one planning pass produced."""

    artifact: PlanningArtifact
    scenario: Scenario
    validation: ValidationResult
    route: Optional[RouteResult] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "artifact": self.artifact.to_dict(),
            "scenario": self.scenario.to_dict(),
            "dag": self.validation.to_dict(),
        }
        if self.route is not None:
            data["route"] = self.route.to_dict()
        return data


def _elapsed_ms(since: float) -> int:
    return int((time.monotonic() - since) * 1000)


class PlanningService:
    """Service layer turning a goal into a validated, composed scenario."""

    def __init__(
        self,
        catalog: Sequence[AgentDescriptor],
        event_log: EventLog,
        selector_mode: "str | PlanningMode" = PlanningMode.HEURISTIC,
        decomposer_mode: "str | PlanningMode" = PlanningMode.HEURISTIC,
        backend: Optional[GenerationBackend] = None,
        bounds: Optional[SelectionBounds] = None,
        router: Optional[Router] = None,
    ):
        self.catalog = list(catalog)
        self.event_log = event_log
        self.bounds = bounds or SelectionBounds()
        self.selector_mode = PlanningMode.parse(selector_mode)
        self.decomposer_mode = PlanningMode.parse(decomposer_mode)
        self.selector = AgentSelector(create_selector(self.selector_mode, backend), self.bounds)
        self.decomposer = create_decomposer(self.decomposer_mode, backend)
        self.router = router
        self.logger = logger.bind(component="planning_service")

    def _narrow_catalog(self, goal: str) -> tuple[list[AgentDescriptor], Optional[RouteResult]]:
        """Restrict the catalog to router candidates when enough of them are known."""
        if self.router is None:
            return self.catalog, None
        route = self.router.route_task(goal)
        candidates = set(route.candidates)
        narrowed = [a for a in self.catalog if a.id in candidates]
        if len(narrowed) >= self.bounds.min:
            self.logger.info("planning.catalog_narrowed", stage=route.stage, count=len(narrowed))
            return narrowed, route
        return self.catalog, route

    async def plan(self, goal: str, title: Optional[str] = None) -> PlanningRun:
        self.logger.info("planning.started", goal=goal[:100])
        catalog, route = self._narrow_catalog(goal)

        t0 = time.monotonic()
        selection = await self.selector.select(goal, catalog)
        selector_ms = _elapsed_ms(t0)
        await self.event_log.append(
            Event(
                EventKind.SELECTOR_GENERATED,
                {"mode": self.selector_mode.value, "ms": selector_ms, "count": len(selection.agents)},
            )
        )

        t1 = time.monotonic()
        decomposition = await self.decomposer.decompose(goal, list(selection.agents), catalog)
        decomposer_ms = _elapsed_ms(t1)
        await self.event_log.append(
            Event(
                EventKind.DECOMPOSER_GENERATED,
                {
                    "mode": self.decomposer_mode.value,
                    "ms": decomposer_ms,
                    "plan": len(decomposition.plan),
                    "orders": len(decomposition.orders),
                },
            )
        )

        # first order per agent
        order_ids: dict[str, str] = {}
        for order in decomposition.orders:
            order_ids.setdefault(order.agent_id, order.order_id)
        agents = tuple(
            SelectedAgent(id=a.id, reason=a.reason, order_id=order_ids.get(a.id)) for a in selection.agents
        )

        validation = validate_dag(agents, decomposition.plan, decomposition.orders)
        if validation.ok:
            await self.event_log.append(Event(EventKind.DAG_VALID))
        else:
            await self.event_log.append(Event(EventKind.DECOMPOSER_INVALID, {"error": validation.error}))
            self.logger.warning("planning.dag_invalid", error=validation.error)

        dag_meta = {"ok": validation.ok, "error": validation.error}
        artifact = PlanningArtifact(
            agents=agents,
            plan=decomposition.plan,
            orders=decomposition.orders,
            meta={
                "selector": {"mode": self.selector_mode.value, "ms": selector_ms},
                "decomposer": {"mode": self.decomposer_mode.value, "ms": decomposer_ms},
                "dag": dag_meta,
            },
        )
        scenario = compose(title if title is not None else goal, agents, artifact.plan, artifact.orders)
        scenario.meta["dag"] = dict(dag_meta)

        self.logger.info(
            "planning.completed",
            agents=len(agents),
            plan=len(artifact.plan),
            orders=len(artifact.orders),
            dag_ok=validation.ok,
        )
        return PlanningRun(artifact=artifact, scenario=scenario, validation=validation, route=route)
