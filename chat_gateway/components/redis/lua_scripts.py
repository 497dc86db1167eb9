"""
Redis Lua Scripts for Atomic Operations.

Scripts execute atomically on Redis, so a compound read-add-clamp on the
shared counter never interleaves with another instance's INCR/DECR.

Usage:
    from chat_gateway.components.redis.lua_scripts import execute_clamped_adjust

    new_count = await execute_clamped_adjust(redis, "chat:connection-count", -3)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from redis.exceptions import NoScriptError

from shared.config.logging import get_logger

if TYPE_CHECKING:
    import redis.asyncio as redis

logger = get_logger(__name__)


# =============================================================================
# Clamped Adjust Lua Script
# =============================================================================

# Adds a signed delta to an integer key, never letting the stored value drop
# below zero. A missing key counts as 0.
CLAMPED_ADJUST_SCRIPT = """
-- KEYS[1] = counter key (e.g., "chat:connection-count")
-- ARGV[1] = signed delta
-- Returns: new value (>= 0)

local key = KEYS[1]
local delta = tonumber(ARGV[1])

local current = tonumber(redis.call('GET', key) or '0')
local new_value = current + delta
if new_value < 0 then
    new_value = 0
end

redis.call('SET', key, new_value)
return new_value
"""

# Script SHA for cached execution
_clamped_adjust_sha: str | None = None


async def get_clamped_adjust_sha(redis_client: "redis.Redis") -> str:
    """
    Load the clamped adjust script into Redis and return its SHA.

    The SHA is cached so the script body is sent once per process.
    """
    global _clamped_adjust_sha

    if _clamped_adjust_sha is None:
        _clamped_adjust_sha = await redis_client.script_load(CLAMPED_ADJUST_SCRIPT)
        logger.debug("Clamped adjust script loaded", sha=_clamped_adjust_sha[:8])

    return _clamped_adjust_sha


async def execute_clamped_adjust(
    redis_client: "redis.Redis",
    key: str,
    delta: int,
) -> int:
    """
    Atomically add ``delta`` to ``key``, clamping the result at 0.

    Runs through EVALSHA. If the store lost its script cache (restart or
    SCRIPT FLUSH) the script is loaded again once.

    Args:
        redis_client: Redis async client.
        key: Integer key to adjust.
        delta: Signed amount to add.

    Returns:
        The value stored after the adjustment.

    Raises:
        redis.exceptions.RedisError: On any store failure.
    """
    global _clamped_adjust_sha

    sha = await get_clamped_adjust_sha(redis_client)
    try:
        result = await redis_client.evalsha(sha, 1, key, int(delta))
    except NoScriptError:
        _clamped_adjust_sha = None
        sha = await get_clamped_adjust_sha(redis_client)
        result = await redis_client.evalsha(sha, 1, key, int(delta))

    logger.debug("Clamped adjust executed", key=key, delta=delta, result=result)
    return int(result)
