"""
Append-only JSONL event log.

Every record is one self-contained JSON object per line. Appends from
concurrent tasks in one process are serialized with an asyncio lock; no
cross-process locking is attempted.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import aiofiles
import structlog

from taskswarm.core.domain.events import Event, utc_now_iso

DEFAULT_MAX_BYTES = 5 * 1024 * 1024

logger = structlog.get_logger()


class EventLog:
    def __init__(self, path: str | Path = "data/logs/events.jsonl"):
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="event_log")

    async def append(self, event: Event | dict[str, Any]) -> dict[str, Any]:
        """Write one record and return it as written."""
        record = event.to_dict() if isinstance(event, Event) else dict(event)
        record.setdefault("ts", utc_now_iso())
        line = json.dumps(record, ensure_ascii=False, default=str)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with self._lock:
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(line + "\n")
        return record

    def read(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Parsed records, oldest first. Malformed lines are skipped."""
        if not self.path.exists():
            return []
        records = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError:
                    self.logger.debug("event_log.malformed_line", path=str(self.path))
        return records[-limit:] if limit else records

    def prune(self, max_bytes: int = DEFAULT_MAX_BYTES, dry_run: bool = False) -> int:
        """
        Keep only the newest whole lines fitting in `max_bytes`.

        Returns the number of bytes removed (or that would be removed).
        """
        if not self.path.exists():
            return 0
        size = self.path.stat().st_size
        if size <= max_bytes:
            return 0

        with open(self.path, "rb") as f:
            f.seek(size - max_bytes)
            tail = f.read()
        # drop the partial first line
        newline = tail.find(b"\n")
        kept = tail[newline + 1 :] if newline != -1 else b""

        self.logger.info(
            "event_log.pruned",
            path=str(self.path),
            size=size,
            kept=len(kept),
            dry_run=dry_run,
        )
        if not dry_run:
            self.path.write_bytes(kept)
        return size - len(kept)
