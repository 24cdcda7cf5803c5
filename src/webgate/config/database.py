from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import make_url

from webgate.config.settings import Settings, get_settings


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection and migration settings."""

    url: str
    echo: bool
    auto_migrate: bool
    migrations_package: str

    @property
    def display_url(self) -> str:
        """The URL with any password masked, for log lines."""
        return make_url(self.url).render_as_string(hide_password=True)


def get_database_config(settings: Settings | None = None) -> DatabaseConfig:
    if settings is None:
        settings = get_settings()
    return DatabaseConfig(
        settings.database_url,
        settings.database_echo,
        settings.database_auto_migrate,
        settings.migrations_package,
    )
