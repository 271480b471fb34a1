"""
File-Based Agent Registry
=========================

Loads agent definitions from a registry directory:

    <agents_dir>/index.json | index.yaml
        agents: [{id, domain, subdomain?}, ...]
    <agents_dir>/<domain>/[<subdomain>/]<id>.codex.yaml  (or <id>.yaml)

Role aliases (e.g. `backend` -> `backend-dev`) resolve to a copy of the base
definition with optional overrides deep-merged in and `instance_alias` set.
"""

import copy
import dataclasses
import json
import re
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from taskswarm.core.domain.models import AgentDefinition, AgentDescriptor

logger = structlog.get_logger()

# alias -> {"id": base agent id, "overrides": partial definition}
DEFAULT_ALIASES: dict[str, dict[str, Any]] = {
    "reviewer": {"id": "code-analyzer"},
    "architect": {"id": "system-architect"},
    "planner": {"id": "task-orchestrator"},
    "frontend": {"id": "coder"},
    "backend": {"id": "backend-dev"},
    "docs": {"id": "api-docs"},
    "tester": {"id": "tester"},
    "validator": {"id": "production-validator"},
    "scaffold": {"id": "coder"},
}

CORE_ROLE_PATTERN = re.compile(r"architect|coder|backend-dev|api-docs|tester", re.IGNORECASE)


def deep_merge(target: dict[str, Any], source: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Merge `source` into `target` in place; nested mappings merge, everything else replaces."""
    for key, value in (source or {}).items():
        if isinstance(value, dict):
            base = target.get(key)
            target[key] = deep_merge(dict(base) if isinstance(base, dict) else {}, value)
        else:
            target[key] = value
    return target


def _read_mapping(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping in {path}")
    return data


class AgentRegistry:
    """
    Read-only registry of agent definitions.

    Raises FileNotFoundError at construction when the index is missing.
    Definitions whose YAML is missing or corrupt are skipped with a warning.
    """

    def __init__(self, agents_dir: str | Path, aliases: Optional[dict[str, dict[str, Any]]] = None):
        self.agents_dir = Path(agents_dir)
        self.aliases = DEFAULT_ALIASES if aliases is None else aliases
        self.logger = logger.bind(component="agent_registry")
        self._definitions: dict[str, dict[str, Any]] = {}
        self._load()

    def _index_path(self) -> Path:
        for name in ("index.json", "index.yaml", "index.yml"):
            candidate = self.agents_dir / name
            if candidate.exists():
                return candidate
        raise FileNotFoundError(f"Agent index not found in {self.agents_dir}")

    def _definition_path(self, entry: dict[str, Any]) -> Optional[Path]:
        folder = self.agents_dir
        for part in (entry.get("domain"), entry.get("subdomain")):
            if part:
                folder = folder / part
        for suffix in (".codex.yaml", ".yaml", ".yml"):
            candidate = folder / f"{entry['id']}{suffix}"
            if candidate.exists():
                return candidate
        return None

    def _load(self) -> None:
        index = _read_mapping(self._index_path())
        for entry in index.get("agents") or []:
            if not isinstance(entry, dict) or not entry.get("id"):
                continue
            path = self._definition_path(entry)
            if path is None:
                self.logger.warning("agent.yaml.missing", agent_id=entry["id"])
                continue
            try:
                data = _read_mapping(path)
            except (yaml.YAMLError, ValueError) as e:
                self.logger.warning("agent.yaml.corrupt", agent_id=entry["id"], path=str(path), error=str(e))
                continue
            data.setdefault("agent", {}).setdefault("id", entry["id"])
            self._definitions[entry["id"]] = data
        self.logger.info("agent_registry.loaded", count=len(self._definitions), path=str(self.agents_dir))

    @property
    def ids(self) -> list[str]:
        return list(self._definitions)

    def catalog(self) -> list[AgentDescriptor]:
        """Catalog entries for selection; core roles get the default flag."""
        return [
            AgentDescriptor(
                id=agent_id,
                name=(data.get("agent") or {}).get("name"),
                capabilities=tuple(str(c) for c in ((data.get("capabilities") or {}).get("core") or [])),
                default=bool(CORE_ROLE_PATTERN.search(agent_id)),
            )
            for agent_id, data in self._definitions.items()
        ]

    def definition(self, agent_id: str) -> AgentDefinition:
        """Base definition by agent id.

        Raises:
            KeyError: If the agent is not registered
        """
        if agent_id not in self._definitions:
            raise KeyError(f"Agent not found: {agent_id}")
        return AgentDefinition.from_dict(copy.deepcopy(self._definitions[agent_id]))

    def resolve(self, alias_or_id: str) -> AgentDefinition:
        """
        Resolve a role alias or agent id to a runtime definition.

        Raises:
            KeyError: If neither an alias binding nor an agent id matches
        """
        binding = self.aliases.get(alias_or_id)
        if not binding:
            return dataclasses.replace(self.definition(alias_or_id), instance_alias=None)

        base_id = binding["id"]
        if base_id not in self._definitions:
            raise KeyError(f"Agent not found: {base_id} (from {alias_or_id})")

        data = copy.deepcopy(self._definitions[base_id])
        deep_merge(data, binding.get("overrides"))
        data.setdefault("agent", {})["instance_alias"] = alias_or_id
        return AgentDefinition.from_dict(data)
