"""
Infrastructure: Redis client handles and connection correlation.
"""

from shared.infrastructure.redis_client import (
    RedisClients,
    create_redis_client,
    create_redis_clients,
)
from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    bind_connection_id,
    connection_id_var,
    get_connection_id,
)

__all__ = [
    "RedisClients",
    "create_redis_client",
    "create_redis_clients",
    "CorrelationIdFilter",
    "bind_connection_id",
    "connection_id_var",
    "get_connection_id",
]
