"""
Router

Cheap pre-filter that maps free text or file paths to candidate agent ids
using a triggers table:

    keywords:       {word: [agent_id, ...]}       case-insensitive substring
    regex:          [{pattern, agents: [...]}]    case-insensitive search
    file_patterns:  {glob: [agent_id, ...]}       `**` spans directories

Text routing tries keywords first and only falls through to the regex stage
when no keyword hits.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import structlog
import yaml

logger = structlog.get_logger()


@dataclass(frozen=True)
class RouteResult:
    stage: str
    candidates: list[str]
    trace: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"stage": self.stage, "candidates": list(self.candidates), "trace": list(self.trace)}


def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a path glob: `**` -> any chars, `*` -> any chars except `/`."""
    parts = pattern.split("**")
    translated = ".*".join(re.escape(p).replace(r"\*", "[^/]*") for p in parts)
    return re.compile(f"^{translated}$", re.IGNORECASE)


def _strip_dot_slash(path: str) -> str:
    return re.sub(r"^\./?", "", path)


class Router:
    """Routes text and file paths to candidate agents."""

    def __init__(self, triggers: dict[str, Any] | None = None):
        triggers = triggers or {}
        self.keywords: dict[str, list[str]] = {
            str(k).lower(): list(v or []) for k, v in (triggers.get("keywords") or {}).items()
        }
        self.regex_rules: list[tuple[str, re.Pattern, list[str]]] = [
            (r["pattern"], re.compile(r["pattern"], re.IGNORECASE), list(r.get("agents") or []))
            for r in (triggers.get("regex") or [])
        ]
        self.file_patterns: list[tuple[str, re.Pattern, list[str]]] = [
            (glob, glob_to_regex(glob), list(agents or []))
            for glob, agents in (triggers.get("file_patterns") or {}).items()
        ]
        self.logger = logger.bind(component="router")

    @classmethod
    def from_file(cls, path: Path) -> "Router":
        """Load a triggers table from JSON or YAML.

        Raises:
            FileNotFoundError: If the triggers file does not exist
            ValueError: If the file does not contain a mapping
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Triggers file not found: {path}")
        text = path.read_text(encoding="utf-8")
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
        if not isinstance(data, dict):
            raise ValueError(f"Triggers file must contain a mapping: {path}")
        return cls(data)

    def route_task(self, text: str) -> RouteResult:
        lowered = str(text or "").lower()

        candidates: dict[str, None] = {}
        trace: list[dict[str, Any]] = []
        for keyword, agents in self.keywords.items():
            if keyword in lowered:
                candidates.update(dict.fromkeys(agents))
                trace.append({"keyword": keyword, "agents": agents})
        if candidates:
            return self._result("keyword", candidates, trace)

        for pattern, compiled, agents in self.regex_rules:
            if compiled.search(str(text or "")):
                candidates.update(dict.fromkeys(agents))
                trace.append({"pattern": pattern, "agents": agents})
        if candidates:
            return self._result("regex", candidates, trace)

        return self._result("none", {}, [])

    def route_files(self, paths: Iterable[str]) -> RouteResult:
        candidates: dict[str, None] = {}
        trace: list[dict[str, Any]] = []
        for raw in paths:
            rel = _strip_dot_slash(str(raw))
            for pattern, compiled, agents in self.file_patterns:
                if compiled.match(rel):
                    candidates.update(dict.fromkeys(agents))
                    trace.append({"path": rel, "pattern": pattern, "agents": agents})
        return self._result("file" if candidates else "none", candidates, trace)

    def _result(self, stage: str, candidates: dict[str, None], trace: list[dict[str, Any]]) -> RouteResult:
        result = RouteResult(stage=stage, candidates=list(candidates), trace=trace)
        self.logger.debug("router.routed", stage=stage, candidates=result.candidates)
        return result
