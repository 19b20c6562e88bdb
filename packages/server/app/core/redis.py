"""Shared Redis client. TaskHub keeps only the JWT revocation list there."""

from __future__ import annotations

import redis.asyncio as redis

from app.core.config import get_settings

settings = get_settings()

_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Lazily create the process-wide client."""
    global _client
    if _client is None:
        _client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout,
            health_check_interval=30,
        )
    return _client


async def ping_redis() -> bool:
    return bool(await (await get_redis()).ping())


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
