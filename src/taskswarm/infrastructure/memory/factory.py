"""Memory backend selection."""

import structlog
from redis.exceptions import RedisError

from taskswarm.config import SwarmSettings
from taskswarm.infrastructure.memory.base import MemoryStore
from taskswarm.infrastructure.memory.file_memory import FileMemoryStore
from taskswarm.infrastructure.memory.redis_memory import RedisMemoryStore, parse_ttl

logger = structlog.get_logger()


async def create_memory_store(settings: SwarmSettings) -> MemoryStore:
    """
    Redis when selected (backend `redis` or a redis URL is set), else files.

    An unreachable or unconfigured Redis is logged and replaced by the file
    store; memory is never a reason to fail a run.
    """
    wants_redis = settings.memory_backend == "redis" or bool(settings.redis_url)
    if wants_redis:
        if not settings.redis_url:
            logger.warning("memory_redis_unconfigured", fallback="file")
        else:
            try:
                return await RedisMemoryStore.connect(
                    settings.redis_url,
                    prefix=settings.redis_prefix,
                    max_window=settings.redis_max_window,
                    ttl_seconds=parse_ttl(settings.redis_ttl),
                )
            except (RedisError, OSError) as e:
                logger.warning("memory_redis_unavailable", error=str(e), fallback="file")
    return FileMemoryStore(settings.memory_dir)
