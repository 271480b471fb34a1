"""
Core Domain Models

This module defines the data models that flow through the planning pipeline:
catalog entries, selected agents, plan tasks, per-agent orders, the executable
scenario and the result of executing a single task.

Planning artifacts are created once per run and treated as immutable afterwards.
Each model knows how to read and write its wire shape (camelCase keys such as
``dependsOn`` and ``agentId`` are preserved on the wire).
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a structural check. Never raised, always returned."""

    ok: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"ok": self.ok}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class AgentDescriptor:
    """
    Catalog entry describing one available agent.

    Attributes:
        id: Unique agent identifier (e.g. "backend-dev")
        name: Optional human-readable name
        capabilities: Ordered core capability keywords
        default: Whether the agent gets a selection bonus
    """

    id: str
    name: str | None = None
    capabilities: tuple[str, ...] = ()
    default: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentDescriptor":
        caps = data.get("capabilities") or {}
        core = caps.get("core", []) if isinstance(caps, dict) else caps
        return cls(
            id=str(data["id"]),
            name=data.get("name"),
            capabilities=tuple(str(c) for c in (core or [])),
            default=bool(data.get("default", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "capabilities": {"core": list(self.capabilities)},
            "default": self.default,
        }

    @property
    def search_text(self) -> str:
        """Lowercased text the heuristic scorer matches goal tokens against."""
        return f"{self.id} {self.name or ''} {' '.join(self.capabilities)}".lower()


@dataclass(frozen=True)
class SelectedAgent:
    """An agent chosen for a run, with the reason it was chosen."""

    id: str
    reason: str
    order_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SelectedAgent":
        return cls(
            id=str(data.get("id", "")),
            reason=str(data.get("reason") or ""),
            order_id=data.get("order_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "reason": self.reason}
        if self.order_id is not None:
            data["order_id"] = self.order_id
        return data


@dataclass(frozen=True)
class Task:
    """A node in the plan's dependency graph."""

    id: str
    title: str
    depends_on: tuple[str, ...] = ()
    parallelizable: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            depends_on=tuple(str(d) for d in (data.get("dependsOn") or [])),
            parallelizable=bool(data.get("parallelizable", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "dependsOn": list(self.depends_on),
            "parallelizable": self.parallelizable,
        }


@dataclass(frozen=True)
class Order:
    """Concrete directive set handed to one selected agent."""

    order_id: str
    agent_id: str
    objectives: tuple[str, ...] = ()
    constraints: tuple[str, ...] = ()
    expected_outputs: tuple[str, ...] = ()
    handoff: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        def _strings(key: str) -> tuple[str, ...]:
            return tuple(str(v) for v in (data.get(key) or []))

        return cls(
            order_id=str(data.get("order_id", "")),
            agent_id=str(data.get("agent_id") or ""),
            objectives=_strings("objectives"),
            constraints=_strings("constraints"),
            expected_outputs=_strings("expected_outputs"),
            handoff=_strings("handoff"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "agent_id": self.agent_id,
            "objectives": list(self.objectives),
            "constraints": list(self.constraints),
            "expected_outputs": list(self.expected_outputs),
            "handoff": list(self.handoff),
        }


@dataclass(frozen=True)
class SelectionResult:
    agents: tuple[SelectedAgent, ...]

    @property
    def ids(self) -> list[str]:
        return [a.id for a in self.agents]

    def to_dict(self) -> dict[str, Any]:
        return {"agents": [a.to_dict() for a in self.agents]}


@dataclass(frozen=True)
class Decomposition:
    """Plan graph plus orders produced by a decomposer."""

    plan: tuple[Task, ...]
    orders: tuple[Order, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Decomposition":
        return cls(
            plan=tuple(Task.from_dict(t) for t in data.get("plan") or []),
            orders=tuple(Order.from_dict(o) for o in data.get("orders") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": [t.to_dict() for t in self.plan],
            "orders": [o.to_dict() for o in self.orders],
        }


@dataclass(frozen=True)
class PlanningArtifact:
    """The `{agents, plan, orders}` triple for one planning run."""

    agents: tuple[SelectedAgent, ...]
    plan: tuple[Task, ...]
    orders: tuple[Order, ...]
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agents": [a.to_dict() for a in self.agents],
            "plan": [t.to_dict() for t in self.plan],
            "orders": [o.to_dict() for o in self.orders],
            "meta": dict(self.meta),
        }


@dataclass
class Phase:
    """One stage of a scenario. `tasks` maps alias -> ordered task strings."""

    name: str
    parallel: bool
    tasks: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "parallel": self.parallel,
            "tasks": {alias: list(items) for alias, items in self.tasks.items()},
        }


@dataclass
class Scenario:
    """Executable three-phase schedule derived from a planning artifact."""

    title: str
    why: dict[str, str]
    phases: list[Phase]
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "why": dict(self.why),
            "phases": [p.to_dict() for p in self.phases],
        }
        if self.meta:
            data["meta"] = dict(self.meta)
        return data


@dataclass(frozen=True)
class ExecutionResult:
    """
    Result of executing one task for one agent.

    Attributes:
        alias: Role alias the task ran under
        agent_id: Identifier of the executing agent
        task: The task payload as given
        ok: Whether the chosen execution path reported success
        ms: Wall-clock duration of the deadline-enforced section
        engine: Which execution path ran ("remote" or "stub")
        summary: One-line human-readable outcome
        output: Structured output of the execution path
        task_id: Per-call identifier, also the run workspace directory name
    """

    alias: str
    agent_id: str
    task: Any
    ok: bool
    ms: int
    engine: str
    summary: str
    output: Any = None
    task_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "alias": self.alias,
            "agentId": self.agent_id,
            "task": self.task,
            "ok": self.ok,
            "ms": self.ms,
            "engine": self.engine,
            "summary": self.summary,
            "output": self.output,
            "taskId": self.task_id,
        }


@dataclass(frozen=True)
class AgentDefinition:
    """
    Runtime definition of an agent as loaded from the agent registry.

    The nested YAML shape is flattened into the fields the execution adapter
    needs. `raw` keeps the original mapping for callers that need more.
    """

    id: str
    name: str | None = None
    instance_alias: str | None = None
    timeout_ms: int | None = None
    max_parallel_tasks: int = 1
    capabilities: tuple[str, ...] = ()
    allowed_tools: tuple[str, ...] = ()
    redact: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def alias(self) -> str:
        return self.instance_alias or self.id or "agent"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AgentDefinition":
        data = data or {}
        agent = data.get("agent") or {}
        runtime = data.get("runtime") or {}
        capabilities = data.get("capabilities") or {}
        tools = ((capabilities.get("detail") or {}).get("tools") or {})
        sharing = ((data.get("memory") or {}).get("sharing_policy") or {})
        concurrency = runtime.get("concurrency") or {}
        timeout = runtime.get("timeout_ms")
        return cls(
            id=str(agent.get("id") or ""),
            name=agent.get("name"),
            instance_alias=agent.get("instance_alias"),
            timeout_ms=int(timeout) if timeout is not None else None,
            max_parallel_tasks=int(concurrency.get("max_parallel_tasks") or 1),
            capabilities=tuple(str(c) for c in (capabilities.get("core") or [])),
            allowed_tools=tuple(str(t) for t in (tools.get("allowed") or [])),
            redact=tuple(str(k) for k in (sharing.get("redact") or [])),
            raw=dict(data),
        )
