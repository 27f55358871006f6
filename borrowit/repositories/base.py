"""
Abstract Repository Pattern

Defines the repository interface that abstracts data access operations,
plus an in-memory implementation used by tests and local tooling.
"""

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from bson import ObjectId

from ..exceptions import DuplicateEntityError


@dataclass
class Entity:
    """
    Base class for domain entities.

    All entities have an ID and timestamps. Subclass this for your domain
    models; subclass fields need defaults since these ones have them.
    """

    id: str | None = None
    created_at: datetime | None = field(default=None)
    updated_at: datetime | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        """Convert entity to dictionary for storage. None values are left out."""
        data = {}
        for key, value in self.__dict__.items():
            if value is None:
                continue
            if key == "id":
                data["_id"] = ObjectId(value) if ObjectId.is_valid(value) else value
            else:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Entity | None":
        """Create entity from dictionary (e.g., from database)."""
        if data is None:
            return None

        data = dict(data)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))

        field_names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in field_names})


T = TypeVar("T", bound=Entity)

SortSpec = list[tuple[str, int]]


class Repository(ABC, Generic[T]):
    """
    Abstract repository interface for data access.

    Implementations raise RepositoryError for store failures and
    DuplicateEntityError when a unique index is violated.
    """

    collection_name: str = ""

    @abstractmethod
    async def find(
        self,
        filter: dict[str, Any] | None = None,
        skip: int = 0,
        limit: int = 100,
        sort: SortSpec | None = None,
    ) -> list[T]:
        """
        Find entities matching a filter.

        Args:
            filter: MongoDB-style equality filter
            skip: Number of documents to skip
            limit: Maximum documents to return (0 means no limit)
            sort: List of (field, direction) tuples, direction 1 or -1

        Returns:
            List of matching entities
        """

    @abstractmethod
    async def find_one(self, filter: dict[str, Any]) -> T | None:
        """Find the first entity matching a filter, or None."""

    @abstractmethod
    async def add(self, entity: T) -> str:
        """
        Add a new entity. Sets ``entity.id`` and ``entity.created_at``.

        Returns:
            ID of the created entity
        """

    @abstractmethod
    async def count(self, filter: dict[str, Any] | None = None) -> int:
        """Count entities matching a filter."""

    @abstractmethod
    async def ensure_unique_index(self, field_name: str, name: str | None = None) -> None:
        """Require ``field_name`` to be unique across the collection."""


class InMemoryRepository(Repository[T]):
    """
    In-memory repository implementation.

    Stores documents in a dictionary and honours filters, sorting, limits
    and unique indexes the way the MongoDB implementation does.
    """

    def __init__(self, entity_class: type[T], collection_name: str = "memory"):
        self._entity_class = entity_class
        self.collection_name = collection_name
        self._storage: dict[str, dict[str, Any]] = {}
        self._unique_fields: set[str] = set()

    async def find(
        self,
        filter: dict[str, Any] | None = None,
        skip: int = 0,
        limit: int = 100,
        sort: SortSpec | None = None,
    ) -> list[T]:
        docs = [d for d in self._storage.values() if self._matches_filter(d, filter or {})]

        # Stable sorts applied from the least to the most significant key
        for key, direction in reversed(sort or []):
            docs.sort(key=lambda d, k=key: _sort_key(d.get(k)), reverse=direction < 0)

        docs = docs[skip:]
        if limit > 0:
            docs = docs[:limit]
        return [self._entity_class.from_dict(d) for d in docs]

    async def find_one(self, filter: dict[str, Any]) -> T | None:
        results = await self.find(filter, limit=1)
        return results[0] if results else None

    async def add(self, entity: T) -> str:
        doc = entity.to_dict()
        for unique_field in self._unique_fields:
            value = doc.get(unique_field)
            if any(d.get(unique_field) == value for d in self._storage.values()):
                raise DuplicateEntityError(
                    f"Duplicate value for unique field '{unique_field}'",
                    field=unique_field,
                    value=value,
                    operation="add",
                    collection_name=self.collection_name,
                )

        id = str(ObjectId())
        entity.id = id
        entity.created_at = datetime.now(timezone.utc)
        doc = entity.to_dict()
        doc["_id"] = id
        self._storage[id] = doc
        return id

    async def count(self, filter: dict[str, Any] | None = None) -> int:
        return sum(1 for d in self._storage.values() if self._matches_filter(d, filter or {}))

    async def ensure_unique_index(self, field_name: str, name: str | None = None) -> None:
        self._unique_fields.add(field_name)

    def _matches_filter(self, data: dict[str, Any], filter: dict[str, Any]) -> bool:
        """Equality-only filter matching."""
        return all(key in data and data[key] == value for key, value in filter.items())

    def clear(self) -> None:
        """Clear all entities (useful for test setup)."""
        self._storage.clear()


def _sort_key(value: Any) -> tuple[bool, Any]:
    # Missing values sort first, as in MongoDB
    return (value is not None, value if value is not None else "")
