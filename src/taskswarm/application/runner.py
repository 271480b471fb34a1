"""
Application Layer - Scenario Runner

Executes a composed scenario phase by phase. Phases run in order; inside a
phase every alias runs concurrently, and each alias runs at most
`max_parallel_tasks` of its own tasks at a time.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog

from taskswarm.core.domain.models import AgentDefinition, ExecutionResult, Phase, Scenario
from taskswarm.application.adapter import ExecutionAdapter, ExecutionOptions

logger = structlog.get_logger()


@dataclass
class AliasSummary:
    alias: str
    agent_id: str
    limit: int
    results: list[ExecutionResult] = field(default_factory=list)

    @property
    def avg_ms(self) -> int:
        return round(sum(r.ms for r in self.results) / len(self.results)) if self.results else 0

    def to_dict(self) -> dict[str, Any]:
        ok = sum(1 for r in self.results if r.ok)
        return {
            "agentId": self.agent_id,
            "limit": self.limit,
            "count": len(self.results),
            "ok": ok,
            "successRate": round(ok / len(self.results), 3) if self.results else 0.0,
            "avgMs": self.avg_ms,
            "tasks": [{"summary": r.summary, "ms": r.ms, "ok": r.ok, "output": r.output} for r in self.results],
        }


@dataclass
class PhaseSummary:
    phase: str
    elapsed_ms: int
    by_alias: dict[str, AliasSummary] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def totals(self) -> dict[str, int]:
        results = [r for s in self.by_alias.values() for r in s.results]
        ok = sum(1 for r in results if r.ok)
        return {"tasks": len(results), "ok": ok, "failed": len(results) - ok}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "phase": self.phase,
            "elapsedMs": self.elapsed_ms,
            "totals": self.totals,
            "byAlias": {alias: s.to_dict() for alias, s in self.by_alias.items()},
        }
        if self.errors:
            data["errors"] = dict(self.errors)
        return data


def _is_policy_violation(result: ExecutionResult) -> bool:
    return isinstance(result.output, dict) and result.output.get("error") == "strict-tools"


class ScenarioRunner:
    """Drives an ExecutionAdapter across the phases of a scenario."""

    def __init__(
        self,
        adapter: ExecutionAdapter,
        resolve: Callable[[str], AgentDefinition],
        options: Optional[ExecutionOptions] = None,
        retries: int = 1,
    ):
        self.adapter = adapter
        self.resolve = resolve
        self.options = options or ExecutionOptions()
        self.retries = retries
        self.logger = logger.bind(component="scenario_runner")

    async def _run_task(self, definition: AgentDefinition, task: Any, semaphore: asyncio.Semaphore) -> ExecutionResult:
        async with semaphore:
            result = await self.adapter.execute_task(definition, task, self.options)
            attempts = 0
            # policy violations are deterministic; retrying cannot help
            while not result.ok and not _is_policy_violation(result) and attempts < self.retries:
                attempts += 1
                self.logger.warning("task.retry", alias=definition.alias, attempt=attempts, retries=self.retries)
                result = await self.adapter.execute_task(definition, task, self.options)
            return result

    async def _run_alias(self, alias: str, tasks: list[Any]) -> AliasSummary:
        definition = self.resolve(alias)
        limit = max(1, definition.max_parallel_tasks)
        semaphore = asyncio.Semaphore(limit)
        results = await asyncio.gather(*(self._run_task(definition, t, semaphore) for t in tasks))
        return AliasSummary(alias=alias, agent_id=definition.id, limit=limit, results=list(results))

    async def run_phase(self, phase: Phase) -> PhaseSummary:
        """
        Run one phase. An alias that cannot be resolved or whose execution
        raises is reported under `errors` without stopping its siblings.
        """
        start = time.monotonic()
        summary = PhaseSummary(phase=phase.name, elapsed_ms=0)

        if phase.parallel:
            outcomes = await asyncio.gather(
                *(self._run_alias(alias, tasks) for alias, tasks in phase.tasks.items()),
                return_exceptions=True,
            )
        else:
            outcomes = []
            for alias, tasks in phase.tasks.items():
                try:
                    outcomes.append(await self._run_alias(alias, tasks))
                except Exception as e:
                    outcomes.append(e)

        for alias, outcome in zip(phase.tasks, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error("phase.alias_failed", phase=phase.name, alias=alias, error=str(outcome))
                summary.errors[alias] = str(outcome)
            else:
                summary.by_alias[alias] = outcome

        summary.elapsed_ms = int((time.monotonic() - start) * 1000)
        self.logger.info("phase.completed", phase=phase.name, elapsed_ms=summary.elapsed_ms, **summary.totals)
        return summary

    async def run(self, scenario: Scenario) -> list[PhaseSummary]:
        summaries = []
        for phase in scenario.phases:
            summaries.append(await self.run_phase(phase))
        return summaries
