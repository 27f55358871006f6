"""
User repository.

Creates users and lists them through an injected repository handle. Every
operation is a coroutine whose value or error reaches the awaiting caller.
"""

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

import bcrypt
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..config import BorrowItConfig
from ..constants import (
    DEFAULT_BCRYPT_ROUNDS,
    MAX_PASSWORD_BYTES,
    USER_FIELDS,
    USER_LIST_LIMIT,
    USERNAME_INDEX_NAME,
)
from ..exceptions import (
    DuplicateEntityError,
    DuplicateUserError,
    RepositoryError,
    UserValidationError,
)
from ..observability import get_logger, log_operation, operation_scope, record_operation
from ..observability import timed_operation
from .base import Entity, Repository
from .mongo import MongoRepository

logger = get_logger(__name__)


@dataclass
class User(Entity):
    """A stored user. ``password`` holds a bcrypt hash, never plaintext."""

    username: str = ""
    password: str = ""
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    middlename: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class UserFields(BaseModel):
    """Caller-supplied fields for a new user."""

    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, description="Unique login name")
    password: str = Field(min_length=1, description="Plaintext password, hashed before storage")
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    middlename: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        size = len(value.encode("utf-8"))
        if size > MAX_PASSWORD_BYTES:
            raise ValueError(
                f"password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8, got {size}"
            )
        return value


def hash_password(password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a plaintext password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


class UserRepository:
    """
    Data access for the users collection.

    The unique ``username`` index is created on the first write if
    ``ensure_indexes`` has not been awaited yet.

    Usage:
        users = UserRepository.from_config(config, connection.users_collection)

        user = await users.create_new_user(
            {"username": "harman", "password": "s3cret", "email": "h@example.com"}
        )
        first_page = await users.get_all_users()
    """

    def __init__(
        self,
        repository: Repository[User],
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
        list_limit: int = USER_LIST_LIMIT,
    ):
        """
        Args:
            repository: Repository handle for User entities
            bcrypt_rounds: bcrypt cost factor for new password hashes
            list_limit: Maximum number of users returned by get_all_users
        """
        self._users = repository
        self._bcrypt_rounds = bcrypt_rounds
        self._list_limit = list_limit
        self._indexes_ensured = False

    @classmethod
    def from_collection(cls, collection: Any, **kwargs: Any) -> "UserRepository":
        """Build a UserRepository over a motor collection."""
        return cls(MongoRepository(collection, User), **kwargs)

    @classmethod
    def from_config(cls, config: BorrowItConfig, collection: Any) -> "UserRepository":
        """
        Build a UserRepository over a motor collection using configured settings.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config.validate()
        return cls.from_collection(collection, bcrypt_rounds=config.bcrypt_rounds)

    @property
    def collection_name(self) -> str:
        return self._users.collection_name

    @timed_operation("users.ensure_indexes")
    async def ensure_indexes(self) -> None:
        """
        Create the unique index on ``username``.

        Raises:
            RepositoryError: If the index cannot be created
        """
        await self._users.ensure_unique_index("username", name=USERNAME_INDEX_NAME)
        self._indexes_ensured = True

    async def create_new_user(self, user: UserFields | Mapping[str, Any]) -> User:
        """
        Create and persist a new user.

        Args:
            user: UserFields, or a mapping with the same keys

        Returns:
            The persisted User with ``id`` and ``created_at`` set

        Raises:
            UserValidationError: If the input is invalid (nothing is written)
            DuplicateUserError: If the username is already taken
            RepositoryError: If the store rejects the write
        """
        fields = _coerce_fields(user)
        values = fields.model_dump()
        values["password"] = hash_password(fields.password, self._bcrypt_rounds)
        entity = User(**{name: values[name] for name in USER_FIELDS})

        with operation_scope(collection_name=self.collection_name, operation="users.create"):
            start_time = time.time()
            try:
                if not self._indexes_ensured:
                    await self.ensure_indexes()
                await self._users.add(entity)
            except DuplicateEntityError as e:
                self._finish("users.create", start_time, success=False, error_type="duplicate")
                raise DuplicateUserError(
                    fields.username, collection_name=self.collection_name
                ) from e
            except RepositoryError as e:
                error_type = e.context.get("error_type")
                self._finish("users.create", start_time, success=False, error_type=error_type)
                raise

            self._finish("users.create", start_time, success=True, user_id=entity.id)
        return entity

    async def get_all_users(self) -> list[User]:
        """
        List users ordered ascending by username, at most ``list_limit`` of them.

        Returns:
            List of users; empty when the collection is empty

        Raises:
            RepositoryError: If the query fails
        """
        with operation_scope(collection_name=self.collection_name, operation="users.list"):
            start_time = time.time()
            try:
                users = await self._users.find(
                    {}, limit=self._list_limit, sort=[("username", 1)]
                )
            except RepositoryError as e:
                error_type = e.context.get("error_type")
                self._finish("users.list", start_time, success=False, error_type=error_type)
                raise

            self._finish("users.list", start_time, success=True, count=len(users))
        return users

    async def find_by_username(self, username: str) -> User | None:
        """Get a user by username, or None."""
        return await self._users.find_one({"username": username})

    @staticmethod
    def verify_password(user: User, candidate: str) -> bool:
        """Check a plaintext password against the user's stored hash."""
        if not user.password:
            return False
        try:
            return bcrypt.checkpw(candidate.encode("utf-8"), user.password.encode("utf-8"))
        except ValueError:
            if not user.password.startswith("$2"):
                logger.warning(f"Stored password for '{user.username}' is not a bcrypt hash")
            return False

    def _finish(self, operation: str, start_time: float, success: bool, **fields: Any) -> None:
        duration_ms = (time.time() - start_time) * 1000
        record_operation(operation, duration_ms, success, collection=self.collection_name)
        log_operation(
            logger,
            operation,
            success=success,
            duration_ms=duration_ms,
            **fields,
        )


def _coerce_fields(user: UserFields | Mapping[str, Any]) -> UserFields:
    if isinstance(user, UserFields):
        return user
    try:
        return UserFields.model_validate(dict(user))
    except (ValidationError, TypeError, ValueError) as e:
        error_paths = []
        if isinstance(e, ValidationError):
            error_paths = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise UserValidationError(
            f"Invalid user fields: {e}", error_paths=error_paths
        ) from e
