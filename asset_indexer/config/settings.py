"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from asset_indexer.config.constants import (
    DEFAULT_SYNC_STREAM,
    RPC_TIMEOUT,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Node RPC
    rpc_host: str = "127.0.0.1"
    rpc_port: int = Field(default=10225, ge=1, le=65535)
    rpc_user: str = "rtm_explorer"
    rpc_password: str = ""
    rpc_timeout: float = Field(
        default=RPC_TIMEOUT, gt=0, description="Per-call RPC timeout in seconds"
    )

    # Sync daemon
    sync_enabled: bool = Field(
        default=False,
        description="Sync daemon only runs when explicitly enabled"
    )
    sync_stream: str = DEFAULT_SYNC_STREAM
    sync_start_height: int = Field(
        default=0, ge=0, description="Watermark used when no sync state exists"
    )
    sync_retry_attempts: int = Field(
        default=3, ge=1, description="Attempts per block before the daemon halts"
    )
    sync_retry_delay: float = Field(
        default=5.0, ge=0, description="Base delay in seconds between block retries"
    )
    sync_poll_interval: float = Field(
        default=30.0, gt=0, description="Sleep in seconds when caught up with the tip"
    )
    sync_pause_interval: float = Field(
        default=10.0, gt=0, description="Sleep in seconds while paused"
    )
    sync_max_source_backoff: float = Field(
        default=300.0, gt=0, description="Cap for source outage backoff in seconds"
    )
    sync_log_interval: int = Field(
        default=10, ge=1, description="Log progress every N blocks"
    )

    # Backfill
    backfill_batch_size: int = Field(default=100, ge=1)
    backfill_confirm_delay: float = Field(
        default=3.0, ge=0, description="Grace period before destructive steps"
    )

    # Logging
    environment: str = "production"
    log_level: str = "INFO"
    log_file: str | None = "logs/indexer.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(('postgresql://', 'postgresql+asyncpg://', 'sqlite')):
            raise ValueError(
                'DATABASE_URL must start with postgresql+asyncpg:// '
                '(or sqlite+aiosqlite:// for local runs)'
            )
        if v.startswith('postgresql://'):
            # The indexer only talks to the database through the async engine
            return v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f'Unknown LOG_LEVEL: {v}')
        return level

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production' and self.sync_enabled:
            if not self.rpc_password:
                logger.warning(
                    'RPC_PASSWORD is empty while SYNC_ENABLED=true. '
                    'The node will most likely reject RPC calls.'
                )
            if self.database_url.startswith('sqlite'):
                logger.warning(
                    'DATABASE_URL points to SQLite in production. '
                    'Use PostgreSQL for the live indexer.'
                )
        return self

    @property
    def rpc_url(self) -> str:
        """Node RPC endpoint URL."""
        return f"http://{self.rpc_host}:{self.rpc_port}"


# Global settings instance
settings = Settings()
