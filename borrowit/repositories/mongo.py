"""
MongoDB Repository Implementation

Implements the Repository interface over a motor collection. Driver
errors are re-raised as RepositoryError so callers handle a single type.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..exceptions import DuplicateEntityError, RepositoryError
from .base import Entity, Repository, SortSpec

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)


class MongoRepository(Repository[T], Generic[T]):
    """
    MongoDB implementation of the Repository interface.

    Example:
        users_collection = connection.users_collection
        user_repo = MongoRepository(users_collection, User)

        users = await user_repo.find({"lastname": "Smith"}, sort=[("username", 1)])
        user_id = await user_repo.add(User(username="jsmith", password="..."))
    """

    def __init__(
        self,
        collection: Any,  # AsyncIOMotorCollection
        entity_class: type[T],
    ):
        """
        Initialize the MongoDB repository.

        Args:
            collection: Motor collection handle
            entity_class: Entity subclass for this repository
        """
        self._collection = collection
        self._entity_class = entity_class
        self.collection_name = getattr(collection, "name", "") or ""

    def _to_entity(self, doc: dict[str, Any] | None) -> T | None:
        """Convert a MongoDB document to an entity."""
        if doc is None:
            return None
        return self._entity_class.from_dict(doc)

    def _to_document(self, entity: T) -> dict[str, Any]:
        """Convert an entity to a MongoDB document without its _id."""
        doc = entity.to_dict()
        doc.pop("_id", None)
        return doc

    def _store_error(self, operation: str, e: PyMongoError) -> RepositoryError:
        logger.error(
            f"{self._entity_class.__name__} {operation} failed on "
            f"'{self.collection_name}': {e}"
        )
        return RepositoryError(
            f"{operation} failed on '{self.collection_name}': {e}",
            operation=operation,
            collection_name=self.collection_name,
            context={"error_type": type(e).__name__},
        )

    async def find(
        self,
        filter: dict[str, Any] | None = None,
        skip: int = 0,
        limit: int = 100,
        sort: SortSpec | None = None,
    ) -> list[T]:
        """Find entities matching a filter."""
        try:
            cursor = self._collection.find(filter or {})
            if sort:
                cursor = cursor.sort(sort)
            if skip > 0:
                cursor = cursor.skip(skip)
            if limit > 0:
                cursor = cursor.limit(limit)

            docs = await cursor.to_list(length=limit or None)
        except PyMongoError as e:
            raise self._store_error("find", e) from e
        return [self._to_entity(doc) for doc in docs]

    async def find_one(self, filter: dict[str, Any]) -> T | None:
        """Find a single entity matching a filter."""
        try:
            doc = await self._collection.find_one(filter)
        except PyMongoError as e:
            raise self._store_error("find_one", e) from e
        return self._to_entity(doc)

    async def add(self, entity: T) -> str:
        """Add a new entity and return its ID."""
        entity.created_at = datetime.now(timezone.utc)
        doc = self._to_document(entity)

        try:
            result = await self._collection.insert_one(doc)
        except DuplicateKeyError as e:
            key_value = (e.details or {}).get("keyValue") or {}
            field_name, value = next(iter(key_value.items()), (None, None))
            raise DuplicateEntityError(
                f"Duplicate key on '{self.collection_name}'",
                field=field_name,
                value=value,
                operation="add",
                collection_name=self.collection_name,
            ) from e
        except PyMongoError as e:
            raise self._store_error("add", e) from e

        entity.id = str(result.inserted_id)
        logger.debug(f"Added {self._entity_class.__name__} with id={entity.id}")
        return entity.id

    async def count(self, filter: dict[str, Any] | None = None) -> int:
        """Count entities matching a filter."""
        try:
            return await self._collection.count_documents(filter or {})
        except PyMongoError as e:
            raise self._store_error("count", e) from e

    async def ensure_unique_index(self, field_name: str, name: str | None = None) -> None:
        """Create a unique ascending index on ``field_name``. Idempotent."""
        try:
            index_name = await self._collection.create_index(
                [(field_name, ASCENDING)], unique=True, name=name or f"{field_name}_unique"
            )
        except PyMongoError as e:
            raise self._store_error("ensure_unique_index", e) from e
        logger.info(f"Unique index '{index_name}' ensured on '{self.collection_name}'")
