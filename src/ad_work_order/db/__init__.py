"""
数据库模块
"""

from .base import Base, new_id, utcnow
from .engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine,
    init_engine_from_settings,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "new_id",
    "utcnow",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine",
    "init_engine_from_settings",
    "reset_engine",
    "session_scope",
]
