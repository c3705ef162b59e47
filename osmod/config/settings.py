"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="osmod", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8080, description="API port")
    api_base_url: str = Field(
        default="http://localhost:8080",
        description="Public base URL, used to build scorer callback links",
    )

    # Authentication
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="JWT signing key (min 32 chars)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=60, description="Access token expiration (minutes)"
    )
    auth_machine_token_expire_days: int = Field(
        default=365, ge=1, description="Lifetime of tokens issued to machine users"
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_max_connections: int = Field(default=10, description="Max Redis connections")
    redis_socket_timeout: float = Field(default=5.0, description="Redis socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Redis connect timeout"
    )
    redis_retry_on_timeout: bool = Field(default=True, description="Retry on timeout")
    redis_health_check_interval: int = Field(
        default=30, description="Health check interval"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(default="osmod", description="Cassandra keyspace")
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    # Scoring proxy
    scoring_timeout_seconds: float = Field(
        default=30.0, description="Timeout for a single scorer request"
    )
    scoring_callback_path: str = Field(
        default="/assistant/scores",
        description="Path scorers post asynchronous results to",
    )
    scoring_default_sensitivity_lower: float = Field(
        default=0.65,
        ge=0.0,
        le=1.0,
        description="Default lower bound at which a summary score tags a comment",
    )
    scoring_default_sensitivity_upper: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Default upper bound at which a summary score tags a comment",
    )

    # Work queue
    workqueue_workers: int = Field(default=4, ge=1, description="Worker tasks")
    workqueue_queue_size: int = Field(
        default=10000, ge=1, description="Maximum queued jobs (jobs dropped when full)"
    )
    workqueue_max_attempts: int = Field(
        default=5, ge=1, description="Attempts before a job is marked failed"
    )
    workqueue_backoff_base_seconds: float = Field(
        default=2.0, gt=0, description="First retry delay"
    )
    workqueue_backoff_max_seconds: float = Field(
        default=300.0, gt=0, description="Upper bound for retry delay"
    )
    workqueue_dead_letter_size: int = Field(
        default=500, ge=1, description="Failed jobs kept for inspection"
    )
    text_size_widths: list[int] = Field(
        default=[696], description="Pixel widths precomputed for new comments"
    )

    # Realtime notifier
    notifier_ping_interval: float = Field(
        default=30.0, gt=0, description="Seconds between keep-alive pings"
    )
    notifier_queue_size: int = Field(
        default=1000, ge=1, description="Pending deltas buffered per connection"
    )

    @model_validator(mode="after")
    def check_sensitivity_range(self) -> "Settings":
        """Reject a default sensitivity range that is not well-ordered."""
        if self.scoring_default_sensitivity_lower > self.scoring_default_sensitivity_upper:
            msg = "scoring_default_sensitivity_lower must not exceed the upper bound"
            raise ValueError(msg)
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    @property
    def scoring_callback_url(self) -> str:
        """Absolute URL prefix for asynchronous scorer callbacks."""
        return f"{self.api_base_url.rstrip('/')}{self.scoring_callback_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
