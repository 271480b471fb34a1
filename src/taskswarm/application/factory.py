"""
Application Layer - Service Factory

Builds the planning service, execution adapter and scenario runner from one
`SwarmSettings` instance, so entry points never wire components by hand.
"""

from typing import Optional

import structlog

from taskswarm.config import SwarmSettings
from taskswarm.core.planning.selector import PlanningMode, SelectionBounds
from taskswarm.core.routing.router import Router
from taskswarm.application.adapter import ExecutionAdapter, ExecutionOptions
from taskswarm.application.planner import PlanningService
from taskswarm.application.runner import ScenarioRunner
from taskswarm.infrastructure.llm.generator import StructuredGenerator
from taskswarm.infrastructure.memory.base import MemoryStore
from taskswarm.infrastructure.memory.factory import create_memory_store
from taskswarm.infrastructure.persistence.agent_registry import AgentRegistry
from taskswarm.infrastructure.persistence.event_log import EventLog
from taskswarm.infrastructure.persistence.workspace import RunWorkspace

logger = structlog.get_logger()


class SwarmFactory:
    def __init__(self, settings: Optional[SwarmSettings] = None, registry: Optional[AgentRegistry] = None):
        self.settings = settings or SwarmSettings()
        self._registry = registry
        self.event_log = EventLog(self.settings.events_path)
        self.workspace = RunWorkspace(self.settings.runs_dir)
        self.logger = logger.bind(component="swarm_factory")

    @property
    def registry(self) -> AgentRegistry:
        if self._registry is None:
            self._registry = AgentRegistry(self.settings.resolve_agents_dir())
        return self._registry

    def router(self) -> Optional[Router]:
        """Router from the configured triggers file, or `<agents_dir>/triggers.json` when present."""
        path = self.settings.triggers_path
        if path is None:
            default = self.settings.resolve_agents_dir() / "triggers.json"
            if not default.exists():
                return None
            path = str(default)
        return Router.from_file(path)

    def planning_service(self) -> PlanningService:
        s = self.settings
        modes = {PlanningMode.parse(s.selector_mode), PlanningMode.parse(s.decomposer_mode)}
        backend = StructuredGenerator(s) if PlanningMode.DELEGATED in modes else None
        return PlanningService(
            catalog=self.registry.catalog(),
            event_log=self.event_log,
            selector_mode=s.selector_mode,
            decomposer_mode=s.decomposer_mode,
            backend=backend,
            bounds=SelectionBounds(min=s.min_agents, max=s.max_agents),
            router=self.router() if s.use_router else None,
        )

    def execution_options(self) -> ExecutionOptions:
        s = self.settings
        return ExecutionOptions(
            runtime=s.runtime,
            strict_tools=s.strict_tools,
            remote_endpoint=s.remote_url,
            remote_key=s.remote_key,
            verbose=s.verbose,
        )

    def adapter(self, memory: MemoryStore) -> ExecutionAdapter:
        return ExecutionAdapter(
            event_log=self.event_log,
            workspace=self.workspace,
            memory=memory,
            runs_max_per_alias=self.settings.runs_max_per_alias,
            default_timeout_ms=self.settings.timeout_ms,
        )

    async def scenario_runner(self, options: Optional[ExecutionOptions] = None) -> ScenarioRunner:
        memory = await create_memory_store(self.settings)
        return ScenarioRunner(
            adapter=self.adapter(memory),
            resolve=self.registry.resolve,
            options=options or self.execution_options(),
            retries=self.settings.retries,
        )
