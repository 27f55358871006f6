"""
Constants for BorrowIt.

Shared values used across the codebase to avoid magic numbers.
"""

from typing import Final

# ============================================================================
# DATABASE CONSTANTS
# ============================================================================

DEFAULT_DB_NAME: Final[str] = "borrowit"
"""Default database name when DB_NAME is not set."""

USERS_COLLECTION: Final[str] = "users"
"""Collection holding user documents."""

# Connection pool defaults
DEFAULT_MAX_POOL_SIZE: Final[int] = 50
"""Default maximum MongoDB connection pool size."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 10
"""Default minimum MongoDB connection pool size."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

MIN_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 1000
"""Lowest accepted server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""

APP_NAME: Final[str] = "BorrowIt"
"""Application name reported to the MongoDB server."""

# ============================================================================
# USER REPOSITORY CONSTANTS
# ============================================================================

USER_LIST_LIMIT: Final[int] = 12
"""Maximum number of users returned by get_all_users."""

USERNAME_INDEX_NAME: Final[str] = "username_unique"
"""Name of the unique index on users.username."""

USER_FIELDS: Final[tuple[str, ...]] = (
    "username",
    "password",
    "firstname",
    "lastname",
    "middlename",
    "email",
    "phone",
)
"""Fields copied from caller input into a new user document."""

# ============================================================================
# PASSWORD HASHING CONSTANTS
# ============================================================================

DEFAULT_BCRYPT_ROUNDS: Final[int] = 12
"""Default bcrypt cost factor."""

MIN_BCRYPT_ROUNDS: Final[int] = 4
MAX_BCRYPT_ROUNDS: Final[int] = 31

MAX_PASSWORD_BYTES: Final[int] = 72
"""bcrypt only accepts passwords up to this many UTF-8 bytes."""
