"""Tests for the event log, run workspace and agent registry."""

import json
import os

import pytest

from taskswarm.core.domain.events import Event, EventKind
from taskswarm.infrastructure.persistence.agent_registry import AgentRegistry, deep_merge
from taskswarm.infrastructure.persistence.event_log import EventLog

from conftest import write_agent


class TestEventLog:
    @pytest.mark.asyncio
    async def test_append_event_and_dict(self, event_log):
        record = await event_log.append(Event(EventKind.DAG_VALID, {"count": 3}))
        assert record["kind"] == "dag_valid"
        assert record["count"] == 3
        await event_log.append({"kind": "custom"})

        records = event_log.read()
        assert [r["kind"] for r in records] == ["dag_valid", "custom"]
        assert "ts" in records[1]

    @pytest.mark.asyncio
    async def test_read_skips_malformed_lines(self, event_log):
        await event_log.append({"kind": "a"})
        with open(event_log.path, "a", encoding="utf-8") as f:
            f.write("{broken\n")
        await event_log.append({"kind": "b"})
        assert [r["kind"] for r in event_log.read()] == ["a", "b"]
        assert [r["kind"] for r in event_log.read(limit=1)] == ["b"]

    def test_read_missing_file(self, tmp_path):
        assert EventLog(tmp_path / "none.jsonl").read() == []

    def test_prune_keeps_whole_tail_lines(self, tmp_path):
        path = tmp_path / "events.jsonl"
        lines = [json.dumps({"kind": "k", "n": i}) for i in range(100)]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        log = EventLog(path)
        size = path.stat().st_size

        assert log.prune(max_bytes=size) == 0
        removed = log.prune(max_bytes=200, dry_run=True)
        assert removed > 0
        assert path.stat().st_size == size

        log.prune(max_bytes=200)
        assert path.stat().st_size <= 200
        records = log.read()
        assert records
        assert records[-1]["n"] == 99


class TestRunWorkspace:
    """Tests for run directories and retention."""

    @pytest.mark.asyncio
    async def test_ensure_and_write(self, workspace):
        run_dir = await workspace.ensure("backend", "t1")
        await workspace.write_input(run_dir, {"a": 1})
        await workspace.write_output(run_dir, {"ok": True})
        assert json.loads((run_dir / "input.json").read_text()) == {"a": 1}
        assert json.loads((run_dir / "output.json").read_text()) == {"ok": True}

    @pytest.mark.asyncio
    async def test_failed_write_is_logged_not_raised(self, workspace, tmp_path):
        await workspace.write_input(tmp_path / "missing-dir", {"a": 1})
        assert not (tmp_path / "missing-dir").exists()

    @pytest.mark.asyncio
    async def test_prune_keeps_newest(self, workspace):
        for i in range(4):
            run_dir = await workspace.ensure("tester", f"t{i}")
            os.utime(run_dir, (1000 + i, 1000 + i))

        removed = await workspace.prune("tester", keep=2)
        assert sorted(p.name for p in removed) == ["t0", "t1"]
        assert sorted(p.name for p in (workspace.root / "tester").iterdir()) == ["t2", "t3"]

    @pytest.mark.asyncio
    async def test_prune_dry_run_and_all(self, workspace):
        for alias in ("a", "b"):
            for i in range(3):
                await workspace.ensure(alias, f"t{i}")
        assert len(await workspace.prune_all(keep=1, dry_run=True)) == 4
        assert len(list((workspace.root / "a").iterdir())) == 3
        assert len(await workspace.prune_all(keep=1)) == 4
        assert len(list((workspace.root / "a").iterdir())) == 1

    @pytest.mark.asyncio
    async def test_prune_unknown_alias(self, workspace):
        assert await workspace.prune("ghost") == []


class TestDeepMerge:
    def test_nested_merge(self):
        target = {"runtime": {"timeout_ms": 1, "concurrency": {"max_parallel_tasks": 1}}, "x": [1]}
        deep_merge(target, {"runtime": {"concurrency": {"max_parallel_tasks": 4}}, "x": [2]})
        assert target == {"runtime": {"timeout_ms": 1, "concurrency": {"max_parallel_tasks": 4}}, "x": [2]}


class TestAgentRegistry:
    """Tests for the file-based agent registry."""

    def test_catalog(self, agents_dir):
        registry = AgentRegistry(agents_dir)
        catalog = {a.id: a for a in registry.catalog()}
        assert set(catalog) == {"system-architect", "backend-dev", "coder", "api-docs", "tester", "code-analyzer"}
        assert catalog["backend-dev"].default is True
        assert catalog["code-analyzer"].default is False
        assert catalog["backend-dev"].capabilities == ("api", "server", "database")

    def test_missing_index(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AgentRegistry(tmp_path)

    def test_missing_and_corrupt_definitions_skipped(self, tmp_path):
        write_agent(tmp_path, "good")
        (tmp_path / "core" / "bad.codex.yaml").write_text("agent: [unclosed", encoding="utf-8")
        index = {"agents": [{"id": "good", "domain": "core"}, {"id": "bad", "domain": "core"}, {"id": "gone"}]}
        (tmp_path / "index.json").write_text(json.dumps(index), encoding="utf-8")
        assert AgentRegistry(tmp_path).ids == ["good"]

    def test_yaml_index_and_subdomain(self, tmp_path):
        write_agent(tmp_path, "planner-x", domain="ops/planning")
        (tmp_path / "index.yaml").write_text(
            "agents:\n  - id: planner-x\n    domain: ops\n    subdomain: planning\n", encoding="utf-8"
        )
        assert AgentRegistry(tmp_path).definition("planner-x").id == "planner-x"

    def test_resolve_alias(self, agents_dir):
        definition = AgentRegistry(agents_dir).resolve("backend")
        assert definition.id == "backend-dev"
        assert definition.alias == "backend"
        assert definition.timeout_ms == 5000
        assert definition.max_parallel_tasks == 2

    def test_resolve_id(self, agents_dir):
        definition = AgentRegistry(agents_dir).resolve("tester")
        assert definition.id == "tester"

    def test_resolve_plain_id_has_no_instance_alias(self, agents_dir):
        definition = AgentRegistry(agents_dir).resolve("coder")
        assert definition.instance_alias is None
        assert definition.alias == "coder"

    def test_resolve_id_clears_stored_alias(self, tmp_path):
        """An unbound id resolves to its base definition without an instance alias."""
        write_agent(tmp_path, "solo", agent={"id": "solo", "instance_alias": "stale"}, runtime={"timeout_ms": 42})
        (tmp_path / "index.json").write_text(json.dumps({"agents": [{"id": "solo", "domain": "core"}]}), encoding="utf-8")
        registry = AgentRegistry(tmp_path)
        assert registry.definition("solo").instance_alias == "stale"
        resolved = registry.resolve("solo")
        assert resolved.instance_alias is None
        assert resolved.timeout_ms == 42

    def test_alias_overrides_merged(self, agents_dir):
        aliases = {"fast-backend": {"id": "backend-dev", "overrides": {"runtime": {"timeout_ms": 100}}}}
        definition = AgentRegistry(agents_dir, aliases=aliases).resolve("fast-backend")
        assert definition.timeout_ms == 100
        assert definition.max_parallel_tasks == 2

    def test_unknown(self, agents_dir):
        registry = AgentRegistry(agents_dir)
        with pytest.raises(KeyError):
            registry.resolve("nobody")
        with pytest.raises(KeyError):
            registry.definition("nobody")
