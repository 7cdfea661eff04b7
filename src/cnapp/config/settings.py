from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from pathlib import Path
from typing import Literal
from functools import lru_cache

from ..database.base import DatabaseConfig
from ..validators.config_validators import to_uppercase, to_lowercase, empty_to_none


class Settings(BaseSettings):
    """
    Application settings loaded from environment.
    """

    # Environment
    ENV: Literal["development", "testing", "staging", "production"] = "development"

    # Database configuration
    DB_DRIVER: str = "postgres"  # provider name looked up in the registry
    DB_DSN: str = "postgresql://localhost:5432/cnapp"
    DB_MAX_OPEN_CONNS: int = Field(default=25, ge=0)  # 0 = unlimited
    DB_MAX_IDLE_CONNS: int = Field(default=5, ge=0)
    DB_CONN_MAX_LIFETIME: float = Field(default=300.0, ge=0)  # seconds, 0 = never recycle
    DB_OPERATION_TIMEOUT: float = Field(default=5.0, gt=0)  # per repository operation

    # Transport security
    DB_SSL_MODE: str | None = None
    DB_SSL_CERT: str | None = None
    DB_SSL_KEY: str | None = None
    DB_SSL_ROOT_CERT: str | None = None

    # SQLAlchemy
    SQLALCHEMY_ECHO: bool = False

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path | None = Path("/var/log/cnapp")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    ENABLE_SQL_LOGGING: bool = False
    LOG_USE_QUEUE: bool = False
    LOG_QUEUE_MAX_SIZE: int = 0  # 0 = unbounded

    # --- Derived settings ---
    def database_config(self) -> DatabaseConfig:
        """
        Build the DatabaseConfig handed to `Provider.connect`.
        """
        return DatabaseConfig(
            driver=self.DB_DRIVER,
            dsn=self.DB_DSN,
            max_open_conns=self.DB_MAX_OPEN_CONNS,
            max_idle_conns=self.DB_MAX_IDLE_CONNS,
            conn_max_lifetime=self.DB_CONN_MAX_LIFETIME,
            ssl_mode=self.DB_SSL_MODE,
            ssl_cert=self.DB_SSL_CERT,
            ssl_key=self.DB_SSL_KEY,
            ssl_root_cert=self.DB_SSL_ROOT_CERT,
            echo=self.SQLALCHEMY_ECHO,
        )

    # --- Validators ---
    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str | None) -> str | None:
        """
        Normalize LOG_LEVEL to uppercase before Literal validation, so
        `LOG_LEVEL=debug` is accepted.
        """
        return to_uppercase(v)

    @field_validator("LOG_FORMAT", "DB_SSL_MODE", mode="before")
    def normalize_lowercase(cls, v: str | None) -> str | None:
        return to_lowercase(v)

    @field_validator("DB_SSL_MODE", "DB_SSL_CERT", "DB_SSL_KEY", "DB_SSL_ROOT_CERT", mode="before")
    def blank_is_unset(cls, v: str | None) -> str | None:
        return empty_to_none(v)

    # --- Settings config ---
    model_config = SettingsConfigDict(
        # Load environment variables from the .env file at the project root.
        env_file=str(Path(__file__).resolve().parents[3] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Settings come from the environment only, so one instance per process is enough.
@lru_cache()
def get_settings() -> Settings:
    return Settings()
