from webgate.database.base import Base
from webgate.database.engine import build_engine, get_engine
from webgate.database.session import build_session_factory, session_scope

__all__ = [
    "Base",
    "build_engine",
    "build_session_factory",
    "get_engine",
    "session_scope",
]
