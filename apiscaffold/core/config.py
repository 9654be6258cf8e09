"""
apiscaffold/core/config.py
Configuration management using Pydantic Settings
"""

from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Annotated, List, Literal
from pathlib import Path
from urllib.parse import quote


class Settings(BaseSettings):
    """
    Service Configuration
    Environment variables can override these defaults.

    Built once by the process entry point and handed to the container,
    the apps and the components. Nothing reads it from a module global.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    APP_NAME: str = "apiscaffold"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False

    HOST: str = "0.0.0.0"
    PORT: int = Field(default=8080, ge=0, le=65535)
    SWAGGER_ENABLED: bool = True

    # Requests per client IP per window
    RATE_LIMIT: int = Field(default=100, ge=1)
    RATE_WINDOW: float = Field(default=60.0, gt=0)  # seconds

    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["*"]

    # Peers whose X-Forwarded-For is trusted for the client IP; empty = none
    TRUSTED_PROXIES: Annotated[List[str], NoDecode] = []

    # ========================================================================
    # Lifecycle Settings
    # ========================================================================
    READY_SETTLE_DELAY: float = Field(default=0.5, ge=0.0)  # seconds after bind
    LISTENER_BIND_TIMEOUT: float = Field(default=10.0, gt=0)
    LISTENER_SHUTDOWN_GRACE: float = Field(default=5.0, gt=0)
    SHUTDOWN_TIMEOUT: float = Field(default=30.0, gt=0)  # overall deadline

    # ========================================================================
    # Probe Server Settings
    # ========================================================================
    PROBE_HOST: str = "0.0.0.0"
    PROBE_PORT: int = Field(default=8081, ge=0, le=65535)
    ENABLE_PROBE_SERVER: bool = True

    # ========================================================================
    # PostgreSQL Settings
    # ========================================================================
    POSTGRES_ENABLED: bool = False
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DBNAME: str = "apiscaffold"
    POSTGRES_SSL_MODE: str = "disable"
    POSTGRES_POOL_MIN_SIZE: int = 1
    POSTGRES_POOL_MAX_SIZE: int = 10

    # ========================================================================
    # ClickHouse Settings
    # ========================================================================
    CLICKHOUSE_ENABLED: bool = False
    CLICKHOUSE_HOST: str = "localhost"
    CLICKHOUSE_PORT: int = 8123
    CLICKHOUSE_USER: str = "default"
    CLICKHOUSE_PASSWORD: str = ""
    CLICKHOUSE_DBNAME: str = "default"
    CLICKHOUSE_CONNECT_TIMEOUT: int = 10
    CLICKHOUSE_MAX_EXECUTION_TIME: int = 60

    # ========================================================================
    # Redis Settings
    # ========================================================================
    REDIS_ENABLED: bool = False
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_USERNAME: str = ""
    REDIS_DB: int = 0
    REDIS_POOL_SIZE: int = 10
    REDIS_TIMEOUT_SECONDS: int = 5

    # ========================================================================
    # Kafka Settings
    # ========================================================================
    KAFKA_ENABLED: bool = False
    KAFKA_BROKERS: Annotated[List[str], NoDecode] = ["localhost:9092"]
    KAFKA_USERNAME: str = ""
    KAFKA_PASSWORD: str = ""
    KAFKA_TIMEOUT_SECONDS: int = 10
    KAFKA_BATCH_SIZE: int = 16384  # bytes per partition batch
    KAFKA_LINGER_MS: int = 1000
    KAFKA_MIN_BYTES: int = 10240  # 10KB
    KAFKA_MAX_BYTES: int = 10485760  # 10MB
    KAFKA_COMMIT_INTERVAL_MS: int = 1000

    # ========================================================================
    # Migrations
    # ========================================================================
    MIGRATIONS_DIR: Path = Path("migrations")

    # ========================================================================
    # Logging Settings
    # ========================================================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "console"

    # ========================================================================
    # Validators
    # ========================================================================

    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v):
        """Accept lower-case level names from the environment"""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("KAFKA_BROKERS", "CORS_ORIGINS", "TRUSTED_PROXIES", mode="before")
    def split_comma_list(cls, v):
        """Allow KAFKA_BROKERS=host1:9092,host2:9092"""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def postgres_dsn(self) -> str:
        """PostgreSQL connection URL; credentials are percent-encoded"""
        return (
            f"postgresql://{quote(self.POSTGRES_USER, safe='')}:{quote(self.POSTGRES_PASSWORD, safe='')}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{quote(self.POSTGRES_DBNAME, safe='')}"
            f"?sslmode={self.POSTGRES_SSL_MODE}"
        )

    @property
    def redis_address(self) -> str:
        return f"{self.REDIS_HOST}:{self.REDIS_PORT}"

    def model_dump_safe(self) -> dict:
        """Export config without passwords"""
        data = self.model_dump()
        for key in list(data):
            if key.endswith("_PASSWORD") and data[key]:
                data[key] = "***"
        return data


def load_settings(**overrides) -> Settings:
    """
    Build a Settings instance from the environment.

    Called once per process by the entry point; tests pass overrides.
    """
    return Settings(**overrides)


# ============================================================================
# Export
# ============================================================================

__all__ = ["Settings", "load_settings"]
