"""
Core module for application configuration, scoring and shared utilities.
"""
from .config import settings

__all__ = ["settings"]
