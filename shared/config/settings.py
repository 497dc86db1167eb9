"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache
import socket

from pydantic_settings import BaseSettings

from shared.utils.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Listener
    port: int = 3001
    host: str = "0.0.0.0"

    # Single origin allowed for HTTP and WebSocket cross-origin requests
    cors_origin: str = "http://localhost:3000"

    # Redis
    # No default: every instance must point at the same store
    redis_url: str = ""
    redis_socket_timeout: int = 5  # Socket timeout in seconds (connect and read/write)
    redis_subscriber_poll_timeout: float = 1.0  # Max wait per pubsub get_message call
    redis_subscriber_error_backoff: float = 1.0  # Pause after a pubsub connection error

    # Instance identity reported on messages and in the health check.
    # Empty means "<hostname>:<port>".
    instance_id: str = ""

    # Shutdown
    shutdown_grace_period: float = 2.0  # Seconds allowed for counter reconciliation

    # WebSocket
    ws_max_message_size: int = 64 * 1024  # 64 KB

    # Environment
    environment: str = "development"
    debug: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def resolved_instance_id(self) -> str:
        """Instance identifier, falling back to hostname and port."""
        if self.instance_id:
            return self.instance_id
        return f"{socket.gethostname()}:{self.port}"

    def require_redis_url(self) -> str:
        """
        Return the Redis URL or fail if it is not configured.

        Raises:
            ConfigurationError: If REDIS_URL is missing or blank.
        """
        url = self.redis_url.strip()
        if not url:
            raise ConfigurationError("missing REDIS_URL")
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
