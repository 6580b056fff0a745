"""Database module."""

from bddrunner.db.base import Base
from bddrunner.db.session import async_session_factory, engine, init_db

__all__ = ["Base", "async_session_factory", "engine", "init_db"]
