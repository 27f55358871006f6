"""
Database layer: MongoDB connection lifecycle.
"""

from .connection import ConnectionManager

__all__ = ["ConnectionManager"]
