"""Tests for the ExecutionAdapter."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aiohttp import test_utils, web

from taskswarm.application.adapter import ExecutionAdapter, ExecutionOptions, admit, check_tools
from taskswarm.core.domain.models import AgentDefinition, ExecutionResult


def make_definition(**overrides) -> AgentDefinition:
    data = {
        "agent": {"id": "backend-dev", "name": "Backend Developer", "instance_alias": "backend"},
        "runtime": {"timeout_ms": 5000},
        "capabilities": {"core": ["api"], "detail": {"tools": {"allowed": ["Read"]}}},
        "memory": {"sharing_policy": {"redact": ["secret"]}},
    }
    data.update(overrides)
    return AgentDefinition.from_dict(data)


@pytest.fixture
def adapter(event_log, workspace, file_memory):
    return ExecutionAdapter(event_log, workspace, file_memory, runs_max_per_alias=10)


def kinds(event_log):
    return [r["kind"] for r in event_log.read()]


class TestAdmission:
    def test_missing_definition(self):
        with pytest.raises(ValueError, match="Invalid agent definition"):
            admit(None)

    def test_definition_without_id(self):
        with pytest.raises(ValueError):
            admit(AgentDefinition(id=""))

    @pytest.mark.asyncio
    async def test_execute_rejects_invalid_definition(self, adapter, event_log):
        with pytest.raises(ValueError):
            await adapter.execute_task(AgentDefinition(id=""), "anything")
        assert event_log.read() == []


class TestToolPolicy:
    """Tests for allow-list checks and strict mode."""

    def test_unrestricted_agent(self):
        assert check_tools(AgentDefinition(id="x"), {"tools": ["Write"]}) is None

    def test_string_task_requests_nothing(self):
        policy = check_tools(make_definition(), "Review a.py")
        assert policy.requested == []
        assert policy.disallowed == []

    def test_disallowed_tools_listed(self):
        policy = check_tools(make_definition(), {"tools": ["Read", "Write", "Bash"]})
        assert policy.disallowed == ["Write", "Bash"]

    @pytest.mark.asyncio
    async def test_strict_mode_rejects_without_executing(self, adapter, event_log, workspace):
        result = await adapter.execute_task(
            make_definition(), {"tools": ["Write"]}, ExecutionOptions(strict_tools=True)
        )

        assert result.ok is False
        assert result.ms == 0
        assert "Disallowed tool" in result.summary
        assert "Write" in result.summary
        assert result.output["error"] == "strict-tools"
        assert kinds(event_log) == ["policy_violation"]
        violation = event_log.read()[0]
        assert violation["detail"] == "strict-tools"
        assert violation["disallowed"] == ["Write"]
        assert not (workspace.root / "backend").exists()

    @pytest.mark.asyncio
    async def test_non_strict_mode_warns_and_runs(self, adapter, event_log):
        result = await adapter.execute_task(make_definition(), {"tools": ["Write"]})
        assert result.ok is True
        assert "policy_violation" not in kinds(event_log)


class TestStubExecution:
    """Tests for local simulation and recording."""

    @pytest.mark.asyncio
    async def test_stub_result_and_events(self, adapter, event_log):
        result = await adapter.execute_task(make_definition(), "Implement endpoint")

        assert result.ok is True
        assert result.engine == "stub"
        assert result.alias == "backend"
        assert result.summary == "Simulated by backend (backend-dev)"
        assert result.output["note"] == "no-op"
        assert kinds(event_log) == ["task_started", "task_complete", "telemetry"]
        complete = event_log.read()[1]
        assert complete["taskId"] == result.task_id
        assert complete["agentId"] == "backend-dev"

    @pytest.mark.asyncio
    async def test_run_directory_files(self, adapter, workspace):
        result = await adapter.execute_task(make_definition(), {"type": "noop", "value": 1})
        run_dir = workspace.root / "backend" / result.task_id
        assert json.loads((run_dir / "input.json").read_text()) == {"type": "noop", "value": 1}
        output = json.loads((run_dir / "output.json").read_text())
        assert output["taskId"] == result.task_id
        assert output["engine"] == "stub"

    @pytest.mark.asyncio
    async def test_memory_entry_is_redacted(self, event_log, workspace, file_memory):
        adapter = ExecutionAdapter(event_log, workspace, file_memory)
        definition = make_definition()
        with patch(
            "taskswarm.application.adapter.simulate_work",
            AsyncMock(return_value={"secret": "hunter2", "visible": "yes"}),
        ):
            await adapter.execute_task(definition, "x")

        line = (file_memory.root / "backend.jsonl").read_text().strip()
        entry = json.loads(line)
        assert entry["output"] == {"secret": "[REDACTED]", "visible": "yes"}

    @pytest.mark.asyncio
    async def test_memory_failure_does_not_fail_task(self, event_log, workspace):
        memory = AsyncMock()
        memory.name = "broken"
        memory.append.side_effect = OSError("disk full")
        adapter = ExecutionAdapter(event_log, workspace, memory)

        result = await adapter.execute_task(make_definition(), "x")
        assert result.ok is True
        assert "task_complete" in kinds(event_log)

    @pytest.mark.asyncio
    async def test_retention_prunes_old_runs(self, event_log, workspace, file_memory):
        adapter = ExecutionAdapter(event_log, workspace, file_memory, runs_max_per_alias=2)
        for _ in range(4):
            await adapter.execute_task(make_definition(), "x")
        assert len(list((workspace.root / "backend").iterdir())) == 2


class TestObserver:
    @pytest.mark.asyncio
    async def test_observer_receives_records(self, adapter):
        seen = []
        await adapter.execute_task(make_definition(), "x", ExecutionOptions(on_event=seen.append))
        assert [r["kind"] for r in seen] == ["task_started", "task_complete", "telemetry"]

    @pytest.mark.asyncio
    async def test_observer_exception_ignored(self, adapter, event_log):
        def explode(record):
            raise RuntimeError("observer broke")

        result = await adapter.execute_task(make_definition(), "x", ExecutionOptions(on_event=explode))
        assert result.ok is True
        assert len(event_log.read()) == 3


class TestRemoteRuntime:
    """Tests for the remote path and its fallback to simulation."""

    @pytest.mark.asyncio
    async def test_remote_success(self, adapter):
        remote = ExecutionResult(
            alias="backend", agent_id="backend-dev", task="x", ok=True, ms=5, engine="remote", summary="done"
        )
        options = ExecutionOptions(runtime="remote", remote_endpoint="http://remote")
        with patch.object(ExecutionAdapter, "_call_remote", AsyncMock(return_value=remote)) as call:
            result = await adapter.execute_task(make_definition(), "x", options)
        assert result.engine == "remote"
        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_remote_error_status_is_not_retried_locally(self, adapter):
        remote = ExecutionResult(
            alias="backend", agent_id="backend-dev", task="x", ok=False, ms=5, engine="remote", summary="500"
        )
        options = ExecutionOptions(runtime="remote", remote_endpoint="http://remote")
        with patch.object(ExecutionAdapter, "_call_remote", AsyncMock(return_value=remote)):
            result = await adapter.execute_task(make_definition(), "x", options)
        assert result.ok is False
        assert result.engine == "remote"

    @pytest.mark.asyncio
    async def test_connection_error_falls_back_to_stub(self, adapter):
        options = ExecutionOptions(runtime="remote", remote_endpoint="http://remote")
        failing = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))
        with patch.object(ExecutionAdapter, "_call_remote", failing):
            result = await adapter.execute_task(make_definition(), "x", options)
        assert result.ok is True
        assert result.engine == "stub"

    @pytest.mark.asyncio
    async def test_deadline_falls_back_to_stub(self, adapter):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        options = ExecutionOptions(runtime="remote", remote_endpoint="http://remote", timeout_ms_override=20)
        with patch.object(ExecutionAdapter, "_call_remote", side_effect=slow):
            result = await adapter.execute_task(make_definition(), "x", options)
        assert result.engine == "stub"

    @pytest.mark.asyncio
    async def test_missing_endpoint_uses_stub(self, adapter):
        with patch.object(ExecutionAdapter, "_call_remote", AsyncMock()) as call:
            result = await adapter.execute_task(make_definition(), "x", ExecutionOptions(runtime="remote"))
        assert result.engine == "stub"
        call.assert_not_awaited()


class TestTimeoutSelection:
    def test_priority(self, adapter):
        definition = make_definition()
        assert adapter.timeout_ms(definition, ExecutionOptions(timeout_ms_override=10)) == 10
        assert adapter.timeout_ms(definition, ExecutionOptions()) == 5000
        assert adapter.timeout_ms(AgentDefinition(id="x"), ExecutionOptions()) == 600_000

    def test_small_override_is_honoured(self, adapter):
        assert adapter.timeout_ms(make_definition(), ExecutionOptions(timeout_ms_override=1)) == 1

    @pytest.mark.parametrize("value", [0, -5])
    def test_non_positive_override_rejected(self, value):
        with pytest.raises(ValueError, match="timeout_ms_override"):
            ExecutionOptions(timeout_ms_override=value)


def remote_app(handler) -> web.Application:
    app = web.Application()
    app.router.add_post("/run", handler)
    return app


class TestRemoteRuntimeServer:
    """Remote runtime against a real HTTP server."""

    @pytest.mark.asyncio
    async def test_success_sends_contract_body(self, adapter):
        received = {}

        async def handler(request):
            received["body"] = await request.json()
            received["auth"] = request.headers.get("authorization")
            return web.json_response({"summary": "built it", "output": {"files": ["api.py"]}})

        async with test_utils.TestServer(remote_app(handler)) as server:
            options = ExecutionOptions(
                runtime="remote",
                remote_endpoint=f"http://{server.host}:{server.port}/",
                remote_key="key",
                provider="openai",
                fallback=["anthropic"],
            )
            result = await adapter.execute_task(make_definition(), {"title": "API"}, options)

        assert result.ok
        assert result.engine == "remote"
        assert result.summary == "built it"
        assert result.output == {"files": ["api.py"]}
        assert received["auth"] == "Bearer key"
        assert received["body"] == {
            "agentId": "backend-dev",
            "alias": "backend",
            "task": {"title": "API"},
            "provider": "openai",
            "fallback": ["anthropic"],
        }

    @pytest.mark.asyncio
    async def test_error_status_with_text_body(self, adapter, event_log):
        """A 500 with a non-JSON body is a failed remote result, not a fallback."""

        async def handler(request):
            return web.Response(status=500, text="boom")

        async with test_utils.TestServer(remote_app(handler)) as server:
            options = ExecutionOptions(runtime="remote", remote_endpoint=f"http://{server.host}:{server.port}")
            result = await adapter.execute_task(make_definition(), "x", options)

        assert not result.ok
        assert result.engine == "remote"
        assert result.summary == "Remote runtime responded 500"
        assert result.output is None
        assert kinds(event_log) == ["task_started", "task_complete", "telemetry"]

    @pytest.mark.asyncio
    async def test_non_object_json_uses_default_summary(self, adapter):
        async def handler(request):
            return web.json_response(["not", "an", "object"])

        async with test_utils.TestServer(remote_app(handler)) as server:
            options = ExecutionOptions(runtime="remote", remote_endpoint=f"http://{server.host}:{server.port}")
            result = await adapter.execute_task(make_definition(), "x", options)

        assert result.ok
        assert result.summary == "Remote runtime responded 200"

    @pytest.mark.asyncio
    async def test_deadline_expires_mid_request(self, adapter):
        """A server slower than the deadline falls back to local simulation."""

        async def handler(request):
            await asyncio.sleep(0.5)
            return web.json_response({"summary": "too late"})

        async with test_utils.TestServer(remote_app(handler)) as server:
            options = ExecutionOptions(
                runtime="remote",
                remote_endpoint=f"http://{server.host}:{server.port}",
                timeout_ms_override=50,
            )
            result = await adapter.execute_task(make_definition(), "x", options)

        assert result.ok
        assert result.engine == "stub"
        assert result.summary == "Simulated by backend (backend-dev)"

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_falls_back(self, adapter):
        async def handler(request):
            return web.Response()

        async with test_utils.TestServer(remote_app(handler)) as server:
            endpoint = f"http://{server.host}:{server.port}"
        result = await adapter.execute_task(
            make_definition(), "x", ExecutionOptions(runtime="remote", remote_endpoint=endpoint)
        )
        assert result.engine == "stub"
