from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

DEFAULT_SESSION_SECRET = "change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    app_env: str = Field(default="development", alias="APP_ENV")

    # HTTP listener
    http_host: str = Field(default="0.0.0.0", alias="HTTP_HOST")
    http_port: int = Field(default=8000, alias="HTTP_PORT")
    origin: str = Field(default="http://localhost:8000", alias="ORIGIN")
    https: bool = Field(default=False, alias="HTTPS")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./webgate.db",
        alias="DATABASE_URL",
    )
    database_echo: bool = Field(
        default=False,
        alias="DATABASE_ECHO",
    )
    database_auto_migrate: bool = Field(
        default=True,
        alias="DATABASE_AUTO_MIGRATE",
    )
    migrations_package: str = Field(
        default="webgate.migrations",
        alias="MIGRATIONS_PACKAGE",
    )

    # Sessions
    session_secret: str = Field(default=DEFAULT_SESSION_SECRET, alias="SESSION_SECRET")
    session_cookie_name: str = Field(default="sid", alias="SESSION_COOKIE_NAME")
    session_idle_timeout_seconds: int = Field(
        default=60 * 60 * 24,
        alias="SESSION_IDLE_TIMEOUT_SECONDS",
    )
    session_purge_interval_seconds: int = Field(
        default=60 * 15,
        alias="SESSION_PURGE_INTERVAL_SECONDS",
    )
    session_degrade_to_anonymous: bool = Field(
        default=False,
        alias="SESSION_DEGRADE_TO_ANONYMOUS",
    )

    # Request pipeline
    static_dirs: list[str] = Field(
        default_factory=lambda: ["dist", "assets/images", "webroot"],
        alias="STATIC_DIRS",
    )
    body_limit_bytes: int = Field(default=100 * 1024, alias="BODY_LIMIT_BYTES")
    gzip_minimum_size: int = Field(default=500, alias="GZIP_MINIMUM_SIZE")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")

    @model_validator(mode="after")
    def require_secret_in_production(self) -> "Settings":
        if self.is_production and self.session_secret == DEFAULT_SESSION_SECRET:
            raise ValueError("SESSION_SECRET must be set when APP_ENV=production")
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
