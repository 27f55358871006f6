"""
BorrowIt - user store over MongoDB.

Async repository for creating and listing users in a document store.
"""

from .config import BorrowItConfig
from .database import ConnectionManager
from .exceptions import (
    BorrowItError,
    ConfigurationError,
    DuplicateUserError,
    InitializationError,
    RepositoryError,
    UserValidationError,
)
from .repositories import User, UserFields, UserRepository

__version__ = "0.1.0"

__all__ = [
    # Config
    "BorrowItConfig",
    # Database
    "ConnectionManager",
    # Repositories
    "User",
    "UserFields",
    "UserRepository",
    # Errors
    "BorrowItError",
    "ConfigurationError",
    "DuplicateUserError",
    "InitializationError",
    "RepositoryError",
    "UserValidationError",
]
