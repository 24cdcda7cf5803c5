from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from webgate.config.database import get_database_config


def build_engine(url: str, *, echo: bool = False) -> Engine:
    kwargs: dict[str, object] = {
        "echo": echo,
        "future": True,
        "pool_pre_ping": True,
    }

    # SQLite needs this for multithreaded app servers.
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}

    return create_engine(url, **kwargs)


@lru_cache
def get_engine() -> Engine:
    """Build and cache a shared SQLAlchemy engine."""
    config = get_database_config()
    return build_engine(config.url, echo=config.echo)
