"""
Redis memory: a capped, expiring list per session stream.

Key layout: `<prefix>:<agentId>:<alias>:<namespace>:<sessionId>`, missing
parts written as `_`.
"""

import json
import re
from typing import Any, Iterable

import structlog
from redis.asyncio import Redis

from taskswarm.core.domain.events import new_run_id, utc_now_iso
from taskswarm.infrastructure.memory.base import MemoryStore, SessionKey, redact_object

DEFAULT_TTL_SECONDS = 7 * 24 * 3600

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

logger = structlog.get_logger()


def parse_ttl(value: str | int | None) -> int:
    """Parse `30s`, `15m`, `12h` or `7d` into seconds; anything else is 7 days."""
    if isinstance(value, int):
        return value if value > 0 else DEFAULT_TTL_SECONDS
    match = re.fullmatch(r"(\d+)([smhd])", str(value or "").strip().lower())
    if not match:
        return DEFAULT_TTL_SECONDS
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2)]


class RedisMemoryStore(MemoryStore):
    name = "redis"

    def __init__(
        self,
        client: Redis,
        prefix: str = "mem",
        max_window: int = 200,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.client = client
        self.prefix = prefix
        self.max_window = max_window
        self.ttl_seconds = ttl_seconds
        self.logger = logger.bind(component="redis_memory")

    @classmethod
    async def connect(cls, url: str, **kwargs: Any) -> "RedisMemoryStore":
        """Open a connection and verify it with PING."""
        client = Redis.from_url(url, decode_responses=True)
        await client.ping()
        logger.info("redis_connected", prefix=kwargs.get("prefix", "mem"))
        return cls(client, **kwargs)

    def key(self, key: SessionKey, namespace: str | None = None) -> str:
        parts = [
            key.agent_id or "_",
            key.alias or "_",
            namespace or key.namespace or "default",
            key.session_id or "_",
        ]
        return ":".join([self.prefix, *parts])

    async def begin_session(self, key: SessionKey) -> str:
        session_id = new_run_id()
        bookkeeping = SessionKey(key.agent_id, key.alias, "session", session_id)
        await self.client.set(self.key(bookkeeping), "1", ex=self.ttl_seconds)
        return session_id

    async def append(self, key: SessionKey, entry: dict[str, Any], redact: Iterable[str] = ()) -> None:
        k = self.key(key)
        line = json.dumps(redact_object({"ts": utc_now_iso(), **entry}, redact), ensure_ascii=False, default=str)
        await self.client.rpush(k, line)
        await self.client.ltrim(k, -self.max_window, -1)
        await self.client.expire(k, self.ttl_seconds)

    async def window(self, key: SessionKey, limit: int = 50) -> list[dict[str, Any]]:
        if limit <= 0:
            return []
        items = await self.client.lrange(self.key(key), -limit, -1)
        out: list[dict[str, Any]] = []
        for item in items:
            try:
                out.append(json.loads(item))
            except json.JSONDecodeError:
                out.append({"raw": item})
        return out

    async def close(self) -> None:
        await self.client.aclose()
        self.logger.info("redis_disconnected")
