"""Optional Redis client used for reward pub/sub.

Redis is not required: without ``ACADEMY_REDIS_URL`` the client stays unset
and reward notifications are skipped.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 20) -> redis.Redis:
    """Create the shared client for ``url``."""
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )
    return _client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis | None:
    """The shared client, or None when pub/sub is not configured."""
    return _client


async def redis_status() -> str | None:
    """Readiness of the configured client: "ok", an error string, or None if unset."""
    if _client is None:
        return None
    try:
        await _client.ping()
    except RedisError as exc:
        return f"error: {exc}"
    return "ok"
