import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()

CACHE_BACKENDS = ("redis", "sqlite")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Cache
    cache_backend: str = os.getenv("CACHE_BACKEND", "redis").lower()
    cache_sqlite_path: str = os.getenv("CACHE_SQLITE_PATH", "ticket_cache.db")
    cache_key_prefix: str = os.getenv("CACHE_KEY_PREFIX", "jira_cache")
    cache_ttl: float = float(os.getenv("CACHE_TTL", "300"))  # 5 minutes
    cache_sweep_interval: float = float(os.getenv("CACHE_SWEEP_INTERVAL", "60"))

    # Upstream (claude CLI with the Atlassian MCP server configured)
    jira_default_user: str = os.getenv("JIRA_DEFAULT_USER", "me")
    claude_command: str = os.getenv("CLAUDE_COMMAND", "claude")
    claude_model: str = os.getenv("CLAUDE_MODEL", "haiku")
    claude_timeout: float = float(os.getenv("CLAUDE_TIMEOUT", "30"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def uses_redis(self) -> bool:
        """Check if the configured cache backend is Redis.

        Returns:
            True if entries live in Redis, False for SQLite
        """
        return self.cache_backend == "redis"

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.cache_ttl <= 0:
            raise ValueError("CACHE_TTL must be greater than 0 seconds")

        if self.cache_backend not in CACHE_BACKENDS:
            raise ValueError(
                f"CACHE_BACKEND must be one of {list(CACHE_BACKENDS)}, "
                f"got {self.cache_backend!r}"
            )

        if self.cache_sweep_interval < 0:
            raise ValueError("CACHE_SWEEP_INTERVAL must be >= 0 (0 disables the sweeper)")

        if self.claude_timeout <= 0:
            raise ValueError("CLAUDE_TIMEOUT must be greater than 0 seconds")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )
