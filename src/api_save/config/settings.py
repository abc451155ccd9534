from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from pathlib import Path
from typing import Literal
from functools import lru_cache


class Settings(BaseSettings):
    """
    Service settings loaded from the environment (and an optional .env file).
    """

    # Environment
    ENV: Literal["development", "testing", "staging", "production"] = "development"

    # Database configuration. DATABASE_URL wins over the individual parts.
    DATABASE_URL: str | None = None
    POSTGRES_DRIVER: str = "asyncpg"
    POSTGRES_USERNAME: str | None = None
    POSTGRES_PASSWORD: str | None = None
    POSTGRES_HOST: str | None = None
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str | None = None
    SQLITE_PATH: Path = Path("./api_save.db")

    # Test database configuration
    TEST_POSTGRES_DB: str | None = None
    TESTING: bool = False

    # SQLAlchemy
    SQLALCHEMY_ECHO: bool = False

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path = Path("/var/log/api-save")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    ENABLE_SQL_LOGGING: bool = False

    # Response codes attached to classified save errors
    DUPLICATED_KEY_STATUS_CODE: int = 400
    INTERNAL_ERROR_STATUS_CODE: int = 500

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parent.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Derived settings ---
    @property
    def database_url(self) -> str:
        """
        Return the connection URL for the configured environment.

        - An explicit DATABASE_URL is used as-is.
        - With Postgres parts configured, the URL points to TEST_POSTGRES_DB when
          TESTING is set (and a test DB is named), otherwise to POSTGRES_DB.
        - Without Postgres configuration, a local SQLite file is used.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if self.POSTGRES_HOST and self.POSTGRES_DB:
            database = self.TEST_POSTGRES_DB if (self.TESTING and self.TEST_POSTGRES_DB) else self.POSTGRES_DB
            return (
                f"postgresql+{self.POSTGRES_DRIVER}://"
                f"{self.POSTGRES_USERNAME}:{self.POSTGRES_PASSWORD}@"
                f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
                f"{database}"
            )

        return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"

    # --- Validators ---
    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str | None) -> str | None:
        """Logging expects upper-case level names ("DEBUG", "INFO", ...)."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("LOG_FORMAT", mode="before")
    @classmethod
    def normalize_log_format(cls, v: str | None) -> str | None:
        return v.lower() if isinstance(v, str) else v


# Settings never change for the lifetime of the process.
@lru_cache()
def get_settings() -> Settings:
    return Settings()
