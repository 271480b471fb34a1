"""
Memory store interface.

A memory store keeps a per-agent, per-session window of recent entries so an
agent can be given its own history. Entries are JSON-serialisable dicts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable

from taskswarm.core.domain.events import new_run_id

REDACTED = "[REDACTED]"


@dataclass(frozen=True)
class SessionKey:
    """Addresses one memory stream."""

    agent_id: str | None
    alias: str | None
    namespace: str = "default"
    session_id: str | None = None

    @property
    def stream_name(self) -> str:
        return self.alias or self.agent_id or "agent"


def redact_object(obj: Any, keys: Iterable[str]) -> Any:
    """Recursive copy with every value under a listed key replaced by `[REDACTED]`."""
    keys = set(keys)
    if isinstance(obj, list):
        return [redact_object(v, keys) for v in obj]
    if isinstance(obj, dict):
        return {k: REDACTED if k in keys else redact_object(v, keys) for k, v in obj.items()}
    return obj


class MemoryStore(ABC):
    """Base class for memory backends."""

    name: str = "memory"

    async def begin_session(self, key: SessionKey) -> str:
        return f"{new_run_id()}-{key.alias or 'sess'}"

    @abstractmethod
    async def append(self, key: SessionKey, entry: dict[str, Any], redact: Iterable[str] = ()) -> None:
        pass

    @abstractmethod
    async def window(self, key: SessionKey, limit: int = 50) -> list[dict[str, Any]]:
        """Most recent `limit` entries, oldest first."""
        pass

    async def end_session(self, session_id: str) -> None:
        return None

    async def close(self) -> None:
        return None
