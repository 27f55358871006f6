"""
Pytest configuration and shared fixtures for BorrowIt tests.

This module provides:
- Mock motor client, database and collection fixtures
- In-memory user repository fixtures
- Test data factories
"""

from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest
from motor.motor_asyncio import AsyncIOMotorCollection

from borrowit.observability import get_metrics_collector
from borrowit.repositories import InMemoryRepository, User, UserRepository

# Minimum bcrypt cost factor
TEST_BCRYPT_ROUNDS = 4


# ============================================================================
# MOCK MONGODB FIXTURES
# ============================================================================


def make_cursor(docs: list | None = None) -> MagicMock:
    """Create a mock motor cursor whose sort/skip/limit chain back to itself."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(docs or []))
    return cursor


@pytest.fixture
def mock_users_collection() -> MagicMock:
    """Create a mock users collection."""
    collection = MagicMock(spec=AsyncIOMotorCollection)
    collection.name = "users"
    collection.find = MagicMock(return_value=make_cursor())
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(
        return_value=MagicMock(inserted_id="65a1f0c2e4b0a1b2c3d4e5f6")
    )
    collection.count_documents = AsyncMock(return_value=0)
    collection.create_index = AsyncMock(return_value="username_unique")
    return collection


@pytest.fixture
def mock_mongo_client(mock_users_collection: MagicMock) -> MagicMock:
    """Create a mock motor client whose databases hand out the mock users collection."""
    db = MagicMock()
    db.__getitem__.return_value = mock_users_collection

    client = MagicMock()
    client.admin = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.__getitem__.return_value = db
    return client


# ============================================================================
# REPOSITORY FIXTURES
# ============================================================================


@pytest.fixture
def memory_store() -> InMemoryRepository:
    """In-memory store for User entities."""
    return InMemoryRepository(User, collection_name="users")


@pytest.fixture
def user_repository(memory_store: InMemoryRepository) -> UserRepository:
    """UserRepository backed by the in-memory store."""
    return UserRepository(memory_store, bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def mongo_user_repository(mock_users_collection: MagicMock) -> UserRepository:
    """UserRepository backed by the mock motor collection."""
    return UserRepository.from_collection(
        mock_users_collection, bcrypt_rounds=TEST_BCRYPT_ROUNDS
    )


# ============================================================================
# TEST DATA
# ============================================================================


@pytest.fixture
def user_fields() -> Dict[str, Any]:
    """A complete set of user fields."""
    return {
        "username": "a",
        "password": "p",
        "firstname": "F",
        "lastname": "L",
        "middlename": "M",
        "email": "a@b.com",
        "phone": "123",
    }


def _make_user_fields(username: str, **overrides: Any) -> Dict[str, Any]:
    fields = {
        "username": username,
        "password": f"{username}-password",
        "firstname": username.title(),
        "lastname": "Tester",
        "email": f"{username}@example.com",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def make_user_fields():
    """Factory for user field mappings keyed by username."""
    return _make_user_fields


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with an empty global metrics collector."""
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()
