"""
Execution Adapter

Runs one task for one agent under policy:

1. admission (invalid definitions are fatal)
2. tool policy (strict mode rejects disallowed tools without executing)
3. run workspace + `task_started` event
4. remote runtime under the deadline, falling back to local simulation
5. output file, redacted memory entry, `task_complete` + `telemetry` events
6. retention pruning of the alias's old run directories

The deadline only bounds the remote call. Local simulation is not
cancellable and runs to completion.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import aiohttp
import structlog

from taskswarm.config import DEFAULT_TIMEOUT_MS
from taskswarm.core.domain.events import Event, EventKind, new_run_id
from taskswarm.core.domain.models import AgentDefinition, ExecutionResult
from taskswarm.application.simulation import simulate_work
from taskswarm.infrastructure.memory.base import MemoryStore, SessionKey, redact_object
from taskswarm.infrastructure.persistence.event_log import EventLog
from taskswarm.infrastructure.persistence.workspace import RunWorkspace

logger = structlog.get_logger()


@dataclass(frozen=True)
class ToolPolicy:
    allowed: list[str]
    requested: list[str]
    disallowed: list[str]


@dataclass
class ExecutionOptions:
    """Per-call execution options."""

    runtime: str = "stub"
    strict_tools: bool = False
    timeout_ms_override: Optional[int] = None
    remote_endpoint: Optional[str] = None
    remote_key: Optional[str] = None
    provider: Optional[str] = None
    fallback: list[str] = field(default_factory=list)
    verbose: bool = False
    on_event: Optional[Callable[[dict[str, Any]], None]] = None

    def __post_init__(self):
        if self.timeout_ms_override is not None and self.timeout_ms_override <= 0:
            raise ValueError(f"timeout_ms_override must be positive: {self.timeout_ms_override}")


def admit(definition: Optional[AgentDefinition]) -> None:
    """
    Raises:
        ValueError: If the definition is missing or has no agent id
    """
    if definition is None or not definition.id:
        raise ValueError("Invalid agent definition")


def check_tools(definition: AgentDefinition, task: Any) -> Optional[ToolPolicy]:
    """Compare tools requested by a dict task against the allow-list. None when unrestricted."""
    allowed = list(definition.allowed_tools)
    if not allowed:
        return None
    raw = task.get("tools") if isinstance(task, dict) else None
    requested = [str(t) for t in raw] if isinstance(raw, list) else []
    return ToolPolicy(allowed, requested, [t for t in requested if t not in allowed])


class ExecutionAdapter:
    """Executes tasks for agent definitions and records every step."""

    def __init__(
        self,
        event_log: EventLog,
        workspace: RunWorkspace,
        memory: MemoryStore,
        runs_max_per_alias: int = 10,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.event_log = event_log
        self.workspace = workspace
        self.memory = memory
        self.runs_max_per_alias = runs_max_per_alias
        self.default_timeout_ms = default_timeout_ms
        self.logger = logger.bind(component="execution_adapter")

    def timeout_ms(self, definition: AgentDefinition, options: ExecutionOptions) -> int:
        if options.timeout_ms_override is not None:
            return options.timeout_ms_override
        return definition.timeout_ms or self.default_timeout_ms

    async def _emit(self, kind: EventKind, options: ExecutionOptions, **fields: Any) -> None:
        record = await self.event_log.append(Event(kind, fields))
        if options.on_event is None:
            return
        try:
            options.on_event(record)
        except Exception as e:
            self.logger.warning("observer_failed", kind=kind.value, error=str(e))

    async def execute_task(
        self,
        definition: AgentDefinition,
        task: Any,
        options: Optional[ExecutionOptions] = None,
    ) -> ExecutionResult:
        """
        Execute one task.

        Returns:
            ExecutionResult; `ok=False` for policy violations or a remote
            runtime that answered with an error status.

        Raises:
            ValueError: If the agent definition is invalid
        """
        admit(definition)
        options = options or ExecutionOptions()
        start = time.monotonic()
        alias, agent_id = definition.alias, definition.id
        log = self.logger.bind(alias=alias, agent_id=agent_id)

        policy = check_tools(definition, task)
        if policy and policy.disallowed:
            log.warning("tool_policy_violation", disallowed=policy.disallowed, allowed=policy.allowed)
            if options.strict_tools:
                message = (
                    f"Disallowed tool(s) requested for {agent_id}: {', '.join(policy.disallowed)} "
                    f"(allowed: {', '.join(policy.allowed)})"
                )
                await self._emit(
                    EventKind.POLICY_VIOLATION,
                    options,
                    alias=alias,
                    agentId=agent_id,
                    detail="strict-tools",
                    disallowed=policy.disallowed,
                )
                return ExecutionResult(
                    alias=alias,
                    agent_id=agent_id,
                    task=task,
                    ok=False,
                    ms=0,
                    engine=options.runtime,
                    summary=message,
                    output={"error": "strict-tools", "details": message},
                )

        task_id = new_run_id()
        run_dir = await self.workspace.ensure(alias, task_id)
        await self.workspace.write_input(run_dir, task)
        await self._emit(EventKind.TASK_STARTED, options, alias=alias, agentId=agent_id, taskId=task_id)
        if options.verbose:
            log.info("task_started", task_id=task_id, task=str(task)[:120])

        result: Optional[ExecutionResult] = None
        if options.runtime == "remote":
            if not options.remote_endpoint:
                log.warning("remote_endpoint_missing", fallback="stub")
            else:
                timeout_ms = self.timeout_ms(definition, options)
                try:
                    async with asyncio.timeout(timeout_ms / 1000):
                        result = await self._call_remote(definition, task, options, start, task_id)
                except (aiohttp.ClientError, TimeoutError) as e:
                    log.warning(
                        "remote_call_failed",
                        error_type=type(e).__name__,
                        error=str(e)[:200] or f"timed out after {timeout_ms}ms",
                        fallback="stub",
                    )

        if result is None:
            output = await simulate_work(task)
            result = ExecutionResult(
                alias=alias,
                agent_id=agent_id,
                task=task,
                ok=True,
                ms=int((time.monotonic() - start) * 1000),
                engine="stub",
                summary=f"Simulated by {alias} ({agent_id})",
                output=output,
                task_id=task_id,
            )

        await self._record(definition, result, run_dir, options)
        if options.verbose:
            log.info("task_complete", task_id=task_id, ms=result.ms, engine=result.engine, ok=result.ok)
        return result

    async def _call_remote(
        self,
        definition: AgentDefinition,
        task: Any,
        options: ExecutionOptions,
        start: float,
        task_id: str,
    ) -> ExecutionResult:
        url = f"{options.remote_endpoint.rstrip('/')}/run"
        headers = {"content-type": "application/json"}
        if options.remote_key:
            headers["authorization"] = f"Bearer {options.remote_key}"
        body = {
            "agentId": definition.id,
            "alias": definition.alias,
            "task": task,
            "provider": options.provider,
            "fallback": list(options.fallback),
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=body, headers=headers) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = {}
                if not isinstance(data, dict):
                    data = {}
                return ExecutionResult(
                    alias=definition.alias,
                    agent_id=definition.id,
                    task=task,
                    ok=response.ok,
                    ms=int((time.monotonic() - start) * 1000),
                    engine="remote",
                    summary=data.get("summary") or f"Remote runtime responded {response.status}",
                    output=data.get("output"),
                    task_id=task_id,
                )

    async def _record(
        self,
        definition: AgentDefinition,
        result: ExecutionResult,
        run_dir,
        options: ExecutionOptions,
    ) -> None:
        await self.workspace.write_output(run_dir, result.to_dict())

        redact = list(definition.redact)
        key = SessionKey(definition.id, definition.alias, "default", result.task_id)
        entry = {
            "taskId": result.task_id,
            "agentId": result.agent_id,
            "summary": result.summary,
            "ok": result.ok,
            "output": redact_object(result.output, redact),
        }
        try:
            await self.memory.append(key, entry, redact=redact)
        except Exception as e:
            self.logger.warning("memory_append_failed", backend=self.memory.name, error=str(e))

        await self._emit(
            EventKind.TASK_COMPLETE,
            options,
            alias=result.alias,
            agentId=result.agent_id,
            taskId=result.task_id,
            ok=result.ok,
            ms=result.ms,
        )
        await self._emit(
            EventKind.TELEMETRY,
            options,
            agentId=result.agent_id,
            alias=result.alias,
            ok=result.ok,
            ms=result.ms,
            engine=result.engine,
        )
        await self.workspace.prune(result.alias, keep=self.runs_max_per_alias)
