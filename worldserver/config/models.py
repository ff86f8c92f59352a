"""
Pydantic-based configuration models for worldserver.

Each concern reads its own environment prefix; AppConfig aggregates them and
also reads a local .env file.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class ServerConfig(BaseSettings):
    """Server network configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, description="Server port")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1024 <= v <= 65535:
            logger.error("Invalid server port", port=v, valid_range="1024-65535")
            raise ValueError("Port must be between 1024 and 65535")
        return v

    model_config = {"env_prefix": "SERVER_", "case_sensitive": False, "extra": "ignore"}


class DatabaseConfig(BaseSettings):
    """Database configuration."""

    url: str = Field(default="sqlite+aiosqlite:///./worldserver.db", description="SQLAlchemy async database URL")
    pool_size: int = Field(default=5, description="Number of connections to maintain in pool")
    echo: bool = Field(default=False, description="Log every SQL statement")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format - PostgreSQL, or SQLite for development."""
        if not v:
            logger.error("Database URL validation failed - empty URL")
            raise ValueError("Database URL cannot be empty")
        if not v.startswith(("postgresql", "sqlite")):
            logger.error("Database URL validation failed - invalid protocol", url_preview=v[:50])
            raise ValueError("Database URL must start with 'postgresql' or 'sqlite'")
        return v

    @field_validator("pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Validate pool size is positive."""
        if v < 1:
            raise ValueError("Pool size must be at least 1")
        return v

    model_config = {"env_prefix": "DATABASE_", "case_sensitive": False, "extra": "ignore"}


class SessionConfig(BaseSettings):
    """Session cookie configuration shared with the login service."""

    cookie_name: str = Field(default="session_id", description="Name of the session cookie")

    model_config = {"env_prefix": "SESSION_", "case_sensitive": False, "extra": "ignore"}


class RealtimeConfig(BaseSettings):
    """Realtime coordinator limits and timings."""

    ws_path: str = Field(default="/api/v1/ws", description="WebSocket route path")
    max_chat_history: int = Field(default=100, description="Messages kept in the global chat log")
    max_party_chat_history: int = Field(default=100, description="Messages kept per party chat log")
    max_chat_message_length: int = Field(default=500, description="Chat text is truncated to this length")
    invite_ttl_seconds: float = Field(default=20.0, description="Pending party invite lifetime")
    invite_cooldown_seconds: float = Field(default=8.0, description="Minimum delay between invites to the same user")
    max_message_size: int = Field(default=16 * 1024, description="Maximum inbound frame size in bytes")

    @field_validator("max_chat_history", "max_party_chat_history", "max_chat_message_length", "max_message_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate limits are positive."""
        if v < 1:
            raise ValueError("Realtime limits must be at least 1")
        return v

    @field_validator("invite_ttl_seconds", "invite_cooldown_seconds")
    @classmethod
    def validate_durations(cls, v: float) -> float:
        """Validate durations are not negative."""
        if v < 0:
            raise ValueError("Durations cannot be negative")
        return v

    @field_validator("ws_path")
    @classmethod
    def validate_ws_path(cls, v: str) -> str:
        """Validate the route path is absolute."""
        if not v.startswith("/"):
            raise ValueError("WebSocket path must start with '/'")
        return v

    model_config = {"env_prefix": "REALTIME_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str = Field(default="local", description="Logging environment")
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate logging environment."""
        valid_environments = ["local", "unit_test", "e2e_test", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}, got '{v}'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got '{v}'")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        if v not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}, got '{v}'")
        return v

    model_config = {"env_prefix": "LOGGING_", "case_sensitive": False, "extra": "ignore"}


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    Aggregates all sub-configurations. Access via get_config().
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}

    @model_validator(mode="after")
    def validate_invite_timings(self) -> "AppConfig":
        """An invite must outlive its cooldown, otherwise re-inviting is pointless."""
        if self.realtime.invite_cooldown_seconds > self.realtime.invite_ttl_seconds:
            raise ValueError("invite_cooldown_seconds must not exceed invite_ttl_seconds")
        return self
