"""
Directory Module Database Models.

Contains SQLAlchemy models for the local employee cache.
"""

from modules.directory.models.employee_cache import CachedEmployee, PendingOperation

__all__ = ["CachedEmployee", "PendingOperation"]
