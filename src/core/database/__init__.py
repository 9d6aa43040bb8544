from src.core.database.session import (
    dispose_engine,
    get_db,
    get_session_factory,
    init_engine,
)
from src.core.database.base import Base, TimestampedModel

__all__ = [
    "dispose_engine",
    "get_db",
    "get_session_factory",
    "init_engine",
    "Base",
    "TimestampedModel",
]
