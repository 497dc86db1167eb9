"""
Redis Lua scripts for atomic counter operations.
"""

from chat_gateway.components.redis.lua_scripts import (
    CLAMPED_ADJUST_SCRIPT,
    execute_clamped_adjust,
    get_clamped_adjust_sha,
)

__all__ = [
    "CLAMPED_ADJUST_SCRIPT",
    "execute_clamped_adjust",
    "get_clamped_adjust_sha",
]
