"""
Models package for the statistics database backend.
"""
from .base import Base, create_db_engine, create_session_factory
from .models import KeyValueEntry

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "KeyValueEntry",
]
