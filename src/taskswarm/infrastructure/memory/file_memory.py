"""JSONL file memory: one `<alias>.jsonl` file per agent alias."""

import asyncio
import json
from pathlib import Path
from typing import Any, Iterable

import aiofiles
import structlog

from taskswarm.core.domain.events import utc_now_iso
from taskswarm.infrastructure.memory.base import MemoryStore, SessionKey, redact_object


class FileMemoryStore(MemoryStore):
    """Append-only per-alias JSONL files under `root`."""

    name = "file"

    def __init__(self, root: str | Path = "data/memory"):
        self.root = Path(root)
        self.locks: dict[str, asyncio.Lock] = {}
        self.logger = structlog.get_logger().bind(component="file_memory")

    def path_for(self, key: SessionKey) -> Path:
        return self.root / f"{key.stream_name}.jsonl"

    def _get_lock(self, stream: str) -> asyncio.Lock:
        if stream not in self.locks:
            self.locks[stream] = asyncio.Lock()
        return self.locks[stream]

    async def append(self, key: SessionKey, entry: dict[str, Any], redact: Iterable[str] = ()) -> None:
        payload = {
            "ts": utc_now_iso(),
            "agentId": key.agent_id,
            "alias": key.alias,
            "namespace": key.namespace,
            "sessionId": key.session_id,
            **entry,
        }
        line = json.dumps(redact_object(payload, redact), ensure_ascii=False, default=str)

        self.root.mkdir(parents=True, exist_ok=True)
        async with self._get_lock(key.stream_name):
            async with aiofiles.open(self.path_for(key), "a", encoding="utf-8") as f:
                await f.write(line + "\n")
        self.logger.debug("memory_appended", stream=key.stream_name, session_id=key.session_id)

    async def window(self, key: SessionKey, limit: int = 50) -> list[dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists() or limit <= 0:
            return []
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()

        lines = [line for line in content.splitlines() if line.strip()]
        out: list[dict[str, Any]] = []
        for line in lines[-limit:]:
            try:
                out.append(json.loads(line))
            except json.JSONDecodeError:
                out.append({"raw": line})
        return out
