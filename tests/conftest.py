"""Shared fixtures for taskswarm tests."""

import json
from pathlib import Path

import pytest
import yaml

from taskswarm.core.domain.models import AgentDescriptor
from taskswarm.infrastructure.memory.file_memory import FileMemoryStore
from taskswarm.infrastructure.persistence.event_log import EventLog
from taskswarm.infrastructure.persistence.workspace import RunWorkspace


CATALOG_ENTRIES = [
    {"id": "system-architect", "name": "System Architect", "capabilities": {"core": ["architecture", "design"]}, "default": True},
    {"id": "backend-dev", "name": "Backend Developer", "capabilities": {"core": ["api", "server", "database"]}, "default": True},
    {"id": "coder", "name": "Coder", "capabilities": {"core": ["frontend", "ui", "react"]}, "default": True},
    {"id": "api-docs", "name": "API Docs", "capabilities": {"core": ["openapi", "documentation"]}, "default": True},
    {"id": "tester", "name": "Tester", "capabilities": {"core": ["testing", "qa"]}, "default": True},
    {"id": "code-analyzer", "name": "Code Analyzer", "capabilities": {"core": ["review", "lint"]}},
]


@pytest.fixture
def catalog() -> list[AgentDescriptor]:
    return [AgentDescriptor.from_dict(e) for e in CATALOG_ENTRIES]


@pytest.fixture
def event_log(tmp_path) -> EventLog:
    return EventLog(tmp_path / "logs" / "events.jsonl")


@pytest.fixture
def workspace(tmp_path) -> RunWorkspace:
    return RunWorkspace(tmp_path / ".runs")


@pytest.fixture
def file_memory(tmp_path) -> FileMemoryStore:
    return FileMemoryStore(tmp_path / "memory")


def write_agent(root: Path, agent_id: str, domain: str = "core", **sections) -> None:
    definition = {"agent": {"id": agent_id, "name": agent_id.replace("-", " ").title()}, **sections}
    folder = root / domain
    folder.mkdir(parents=True, exist_ok=True)
    (folder / f"{agent_id}.codex.yaml").write_text(yaml.safe_dump(definition), encoding="utf-8")


@pytest.fixture
def agents_dir(tmp_path) -> Path:
    """A small on-disk registry with an index and one definition per catalog entry."""
    root = tmp_path / "agents"
    root.mkdir()
    index = {"agents": []}
    for entry in CATALOG_ENTRIES:
        index["agents"].append({"id": entry["id"], "domain": "core"})
        write_agent(
            root,
            entry["id"],
            capabilities={"core": entry["capabilities"]["core"]},
            runtime={"timeout_ms": 5000, "concurrency": {"max_parallel_tasks": 2}},
        )
    (root / "index.json").write_text(json.dumps(index), encoding="utf-8")
    return root
