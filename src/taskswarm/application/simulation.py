"""
Local simulation of agent work.

Used when no remote runtime is configured or the remote call fails. It
recognises a few task shapes and produces a structured, deterministic output
(a quick code review of files on disk, an architecture outline); anything
else is a short no-op.
"""

import asyncio
import re
from pathlib import Path
from typing import Any

LONG_LINE_CHARS = 120
NOOP_DELAY_SECONDS = 0.06

_REVIEW = re.compile(r"^\s*Review\s+(.+?)\s*$", re.IGNORECASE)
_PROPOSE = re.compile(r"^\s*Propose architecture for\s+(.+?)\s*$", re.IGNORECASE)
_MARKER = re.compile(r"TODO|FIXME")
_DEBUG_PRINT = re.compile(r"console\.|\bprint\(")


def design_outline(topic: str) -> list[str]:
    return [
        f"Goals and scope of {topic}",
        "Current constraints and assumptions",
        "Proposed components and data flow",
        "Interfaces/APIs and contracts",
        "Performance, reliability, and security considerations",
        "Testing and rollout plan",
    ]


def quick_file_heuristics(file_path: str) -> dict[str, Any]:
    """Line count, long lines, TODO/FIXME markers and debug prints of one file."""
    try:
        text = Path(file_path).resolve().read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return {"exists": False, "error": "file not found", "path": file_path}

    lines = re.split(r"\r?\n", text)
    return {
        "exists": True,
        "lines": len(lines),
        "longLines": [i for i, line in enumerate(lines, start=1) if len(line) > LONG_LINE_CHARS],
        "todos": [
            {"line": i, "text": line.strip()} for i, line in enumerate(lines, start=1) if _MARKER.search(line)
        ],
        "consoleLogs": [i for i, line in enumerate(lines, start=1) if _DEBUG_PRINT.search(line)],
    }


def _review(files: list[str]) -> dict[str, Any]:
    findings = {f: quick_file_heuristics(f) for f in files}
    return {"kind": "code.review", "files": list(findings), "findings": findings}


async def simulate_work(task: Any) -> dict[str, Any]:
    if isinstance(task, dict):
        if task.get("type") == "code.review":
            files = task.get("files")
            if not isinstance(files, list):
                files = [task["file"]] if task.get("file") else []
            return _review([str(f) for f in files])
        if task.get("type") == "design.proposal":
            return {
                "kind": "design.proposal",
                "title": task.get("title") or "Architecture Outline",
                "bullets": design_outline(task.get("topic") or "module"),
            }

    if isinstance(task, str):
        match = _REVIEW.match(task)
        if match:
            return _review([match.group(1)])
        match = _PROPOSE.match(task)
        if match:
            topic = match.group(1)
            return {"kind": "design.proposal", "title": f"Architecture for {topic}", "bullets": design_outline(topic)}

    await asyncio.sleep(NOOP_DELAY_SECONDS)
    return {"note": "no-op", "details": str(task)[:200]}
