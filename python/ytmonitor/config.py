"""Application settings loaded from environment variables.

Environment Configuration:
    YTM_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (defaults to an embedded SQLite file)
    YTM_AUTO_CREATE_SCHEMA: Create tables at startup (embedded mode)
    YTM_MANAGEMENT_SECRET: Shared secret for management endpoints (required in staging/prod)

Rate Limiting:
    REDIS_URL: Optional Redis backend shared between processes
    REGISTER_RATE_LIMIT_PER_HOUR: Registration attempts allowed per source per hour
    API_RATE_LIMIT_PER_WINDOW / API_RATE_LIMIT_WINDOW_S: General per-source limit

Agent Configuration (AgentSettings):
    YTM_API_URL: Base URL of the desktop service
    YTM_AGENT_STATE_PATH: JSON file holding credentials and the history buffer
    HEARTBEAT_INTERVAL_S / SYNC_INTERVAL_S / RULE_REFRESH_INTERVAL_S: Timer cadences
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Desktop service configuration.

    Validation rules:
    - YTM_MANAGEMENT_SECRET is required in staging and prod only
    - Every limit and window must be >= 1
    """

    ytm_env: Environment = Field(default=Environment.LOCAL, alias="YTM_ENV")
    database_url: str = Field(default="sqlite:///./ytmonitor.db", alias="DATABASE_URL")
    auto_create_schema: bool = Field(default=True, alias="YTM_AUTO_CREATE_SCHEMA")
    management_secret: str | None = Field(default=None, alias="YTM_MANAGEMENT_SECRET")

    # Rate limiting
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    register_rate_limit_per_hour: int = Field(default=10, alias="REGISTER_RATE_LIMIT_PER_HOUR")
    api_rate_limit_per_window: int = Field(default=1000, alias="API_RATE_LIMIT_PER_WINDOW")
    api_rate_limit_window_s: int = Field(default=900, alias="API_RATE_LIMIT_WINDOW_S")

    # Device liveness and ingestion
    device_online_window_s: int = Field(default=120, alias="DEVICE_ONLINE_WINDOW_S")
    history_batch_max: int = Field(default=100, alias="HISTORY_BATCH_MAX")

    # Block metadata lookup (YouTube oEmbed)
    fetch_video_metadata: bool = Field(default=False, alias="FETCH_VIDEO_METADATA")
    metadata_timeout_s: float = Field(default=5.0, alias="METADATA_TIMEOUT_S")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure environment-specific settings are present and limits are sane."""
        if self.ytm_env in (Environment.STAGING, Environment.PROD):
            if not self.management_secret:
                raise ValueError(
                    f"YTM_MANAGEMENT_SECRET is required for YTM_ENV={self.ytm_env.value}"
                )

        for alias, value in (
            ("REGISTER_RATE_LIMIT_PER_HOUR", self.register_rate_limit_per_hour),
            ("API_RATE_LIMIT_PER_WINDOW", self.api_rate_limit_per_window),
            ("API_RATE_LIMIT_WINDOW_S", self.api_rate_limit_window_s),
            ("DEVICE_ONLINE_WINDOW_S", self.device_online_window_s),
            ("HISTORY_BATCH_MAX", self.history_batch_max),
        ):
            if value < 1:
                raise ValueError(f"{alias} must be >= 1")

        return self

    @property
    def requires_management_secret(self) -> bool:
        """Whether management endpoints must present the shared secret."""
        return bool(self.management_secret)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


class AgentSettings(BaseSettings):
    """Device agent configuration.

    Cadences mirror the extension: heartbeat every minute, history upload
    every ten minutes, rule refresh every thirty seconds.
    """

    api_url: str = Field(default="http://localhost:3000", alias="YTM_API_URL")
    state_path: Path = Field(
        default=Path.home() / ".ytmonitor" / "agent.json", alias="YTM_AGENT_STATE_PATH"
    )
    device_name: str | None = Field(default=None, alias="YTM_DEVICE_NAME")

    heartbeat_interval_s: float = Field(default=60.0, alias="HEARTBEAT_INTERVAL_S")
    sync_interval_s: float = Field(default=600.0, alias="SYNC_INTERVAL_S")
    rule_refresh_interval_s: float = Field(default=30.0, alias="RULE_REFRESH_INTERVAL_S")
    max_history_buffer: int = Field(default=100, alias="MAX_HISTORY_BUFFER")
    request_timeout_s: float = Field(default=10.0, alias="REQUEST_TIMEOUT_S")
    attempt_log_policy: str = Field(default="per_navigation", alias="ATTEMPT_LOG_POLICY")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_agent_settings(self) -> "AgentSettings":
        if self.max_history_buffer < 1:
            raise ValueError("MAX_HISTORY_BUFFER must be >= 1")
        if self.attempt_log_policy not in ("per_navigation", "per_check"):
            raise ValueError("ATTEMPT_LOG_POLICY must be 'per_navigation' or 'per_check'")
        for alias, value in (
            ("HEARTBEAT_INTERVAL_S", self.heartbeat_interval_s),
            ("SYNC_INTERVAL_S", self.sync_interval_s),
            ("RULE_REFRESH_INTERVAL_S", self.rule_refresh_interval_s),
            ("REQUEST_TIMEOUT_S", self.request_timeout_s),
        ):
            if value <= 0:
                raise ValueError(f"{alias} must be > 0")
        return self

    @property
    def normalized_api_url(self) -> str:
        """Return the API base URL with trailing slash stripped."""
        return self.api_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Raises:
        ValidationError: If settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
