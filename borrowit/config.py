"""
Configuration management for BorrowIt.

Values come from explicit parameters first, then environment variables,
then the defaults in ``borrowit.constants``.
"""

import os

from .constants import (
    DEFAULT_BCRYPT_ROUNDS,
    DEFAULT_DB_NAME,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    MAX_BCRYPT_ROUNDS,
    MIN_BCRYPT_ROUNDS,
    MIN_SERVER_SELECTION_TIMEOUT_MS,
    USERS_COLLECTION,
)
from .exceptions import ConfigurationError


class BorrowItConfig:
    """
    BorrowIt configuration.

    Example:
        # Using environment variables
        config = BorrowItConfig()
        config.validate()
        connection = ConnectionManager.from_config(config)

        # Or using direct parameters
        config = BorrowItConfig(
            mongo_uri="mongodb://localhost:27017",
            db_name="borrowit"
        )
    """

    def __init__(
        self,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        users_collection: str | None = None,
        max_pool_size: int | None = None,
        min_pool_size: int | None = None,
        server_selection_timeout_ms: int | None = None,
        bcrypt_rounds: int | None = None,
    ):
        """
        Initialize configuration.

        Args:
            mongo_uri: MongoDB connection URI (defaults to MONGO_URI env var)
            db_name: Database name (defaults to DB_NAME env var or "borrowit")
            users_collection: Users collection name (defaults to USERS_COLLECTION
                env var or "users")
            max_pool_size: Maximum connection pool size (defaults to 50 or MONGO_MAX_POOL_SIZE)
            min_pool_size: Minimum connection pool size (defaults to 10 or MONGO_MIN_POOL_SIZE)
            server_selection_timeout_ms: Server selection timeout in ms (defaults to 5000)
            bcrypt_rounds: bcrypt cost factor for password hashing (defaults to 12)
        """
        self.mongo_uri = mongo_uri or os.getenv("MONGO_URI", "")
        self.db_name = db_name or os.getenv("DB_NAME", DEFAULT_DB_NAME)
        self.users_collection = users_collection or os.getenv(
            "USERS_COLLECTION", USERS_COLLECTION
        )
        self.max_pool_size = max_pool_size if max_pool_size is not None else _env_int(
            "MONGO_MAX_POOL_SIZE", DEFAULT_MAX_POOL_SIZE
        )
        self.min_pool_size = min_pool_size if min_pool_size is not None else _env_int(
            "MONGO_MIN_POOL_SIZE", DEFAULT_MIN_POOL_SIZE
        )
        self.server_selection_timeout_ms = (
            server_selection_timeout_ms
            if server_selection_timeout_ms is not None
            else _env_int("MONGO_SERVER_SELECTION_TIMEOUT_MS", DEFAULT_SERVER_SELECTION_TIMEOUT_MS)
        )
        self.bcrypt_rounds = (
            bcrypt_rounds
            if bcrypt_rounds is not None
            else _env_int("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS)
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        if not self.mongo_uri:
            raise ConfigurationError(
                "mongo_uri is required (set MONGO_URI environment variable or pass directly)",
                config_key="mongo_uri",
            )

        if not self.db_name:
            raise ConfigurationError(
                "db_name is required (set DB_NAME environment variable or pass directly)",
                config_key="db_name",
            )

        if not self.users_collection:
            raise ConfigurationError(
                "users_collection must not be empty", config_key="users_collection"
            )

        if self.max_pool_size < 1:
            raise ConfigurationError(
                f"max_pool_size must be >= 1, got {self.max_pool_size}",
                config_key="max_pool_size",
                config_value=self.max_pool_size,
            )

        if self.min_pool_size < 1:
            raise ConfigurationError(
                f"min_pool_size must be >= 1, got {self.min_pool_size}",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.min_pool_size > self.max_pool_size:
            raise ConfigurationError(
                f"min_pool_size ({self.min_pool_size}) cannot be greater than "
                f"max_pool_size ({self.max_pool_size})",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.server_selection_timeout_ms < MIN_SERVER_SELECTION_TIMEOUT_MS:
            raise ConfigurationError(
                f"server_selection_timeout_ms must be >= {MIN_SERVER_SELECTION_TIMEOUT_MS}, "
                f"got {self.server_selection_timeout_ms}",
                config_key="server_selection_timeout_ms",
                config_value=self.server_selection_timeout_ms,
            )

        if not MIN_BCRYPT_ROUNDS <= self.bcrypt_rounds <= MAX_BCRYPT_ROUNDS:
            raise ConfigurationError(
                f"bcrypt_rounds must be between {MIN_BCRYPT_ROUNDS} and "
                f"{MAX_BCRYPT_ROUNDS}, got {self.bcrypt_rounds}",
                config_key="bcrypt_rounds",
                config_value=self.bcrypt_rounds,
            )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}", config_key=name, config_value=raw
        ) from e
