"""
Storage Module - Black Box Interface

Purpose: Persist tasks and their execution history
Interface: get_redis_client(), RedisTaskStore.save(), find_by_id(), append_execution()
Hidden: Redis key layout, connection handling, serialization

Can be replaced with any storage backend without affecting other modules,
as long as appending an execution stays atomic.
"""

import redis.asyncio as redis

from .task_store import RedisTaskStore, TaskStore


async def get_redis_client(config) -> redis.Redis:
    """Create Redis client from configuration."""
    # Password passed separately to avoid URL encoding issues
    redis_url = f"redis://{config.get('redis_host')}:{config.get('redis_port')}/{config.get('redis_db')}"

    return redis.from_url(
        redis_url,
        password=config.get("redis_password"),
        encoding="utf-8",
        decode_responses=True,
    )


__all__ = ["RedisTaskStore", "TaskStore", "get_redis_client"]
