"""
Unit tests for UserRepository.

Behaviour is exercised against the in-memory store; driver interaction
and failure propagation against a mocked motor collection.
"""

import logging
import random

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, OperationFailure, ServerSelectionTimeoutError

from borrowit.config import BorrowItConfig
from borrowit.constants import USER_LIST_LIMIT
from borrowit.exceptions import (
    DuplicateEntityError,
    DuplicateUserError,
    RepositoryError,
    UserValidationError,
)
from borrowit.observability import get_metrics_collector
from borrowit.repositories import User, UserFields, UserRepository, hash_password


class TestCreateNewUser:
    """Test user creation against the in-memory store."""

    @pytest.mark.asyncio
    async def test_created_user_is_listed_with_matching_fields(self, user_repository, user_fields):
        """Test that one created user is returned by get_all_users with its fields."""
        created = await user_repository.create_new_user(user_fields)

        users = await user_repository.get_all_users()

        assert len(users) == 1
        stored = users[0]
        assert stored.id == created.id
        for name in ("username", "firstname", "lastname", "middlename", "email", "phone"):
            assert getattr(stored, name) == user_fields[name]
        assert UserRepository.verify_password(stored, "p")

    @pytest.mark.asyncio
    async def test_returns_persisted_user(self, user_repository, user_fields):
        """Test that the returned user carries an id and creation timestamp."""
        created = await user_repository.create_new_user(user_fields)

        assert isinstance(created, User)
        assert created.id
        assert created.created_at is not None

    @pytest.mark.asyncio
    async def test_password_is_not_stored_in_plaintext(self, user_repository, user_fields):
        """Test that the stored password is a bcrypt hash of the input."""
        created = await user_repository.create_new_user(user_fields)

        assert created.password != "p"
        assert created.password.startswith("$2")
        assert UserRepository.verify_password(created, "p")
        assert not UserRepository.verify_password(created, "wrong")

    @pytest.mark.asyncio
    async def test_accepts_user_fields_model(self, user_repository):
        """Test that a UserFields instance is accepted as input."""
        created = await user_repository.create_new_user(
            UserFields(username="modeluser", password="secret")
        )

        assert created.username == "modeluser"
        assert created.email is None

    @pytest.mark.asyncio
    async def test_optional_fields_may_be_omitted(self, user_repository):
        """Test that only username and password are required."""
        created = await user_repository.create_new_user({"username": "min", "password": "x"})

        found = await user_repository.find_by_username("min")
        assert found is not None
        assert found.id == created.id
        assert found.phone is None

    @pytest.mark.asyncio
    async def test_missing_password_is_rejected(self, user_repository, memory_store):
        """Test that invalid input raises before anything is written."""
        with pytest.raises(UserValidationError) as exc_info:
            await user_repository.create_new_user({"username": "nopass"})

        assert "password" in exc_info.value.error_paths
        assert await memory_store.count() == 0

    @pytest.mark.asyncio
    async def test_empty_username_is_rejected(self, user_repository):
        """Test that an empty username fails validation."""
        with pytest.raises(UserValidationError) as exc_info:
            await user_repository.create_new_user({"username": "", "password": "p"})

        assert "username" in exc_info.value.error_paths

    @pytest.mark.asyncio
    async def test_unknown_field_is_rejected(self, user_repository, user_fields):
        """Test that unknown keys are not silently stored."""
        user_fields["is_admin"] = True

        with pytest.raises(UserValidationError) as exc_info:
            await user_repository.create_new_user(user_fields)

        assert "is_admin" in exc_info.value.error_paths

    @pytest.mark.asyncio
    @pytest.mark.parametrize("password", ["p" * 73, "é" * 37])
    async def test_password_over_72_bytes_is_rejected(
        self, user_repository, memory_store, password
    ):
        """Test that passwords bcrypt cannot hash fail validation with nothing written."""
        with pytest.raises(UserValidationError) as exc_info:
            await user_repository.create_new_user({"username": "long", "password": password})

        assert "password" in exc_info.value.error_paths
        assert await memory_store.count() == 0

    @pytest.mark.asyncio
    async def test_password_of_72_bytes_is_accepted(self, user_repository):
        """Test that a password at the bcrypt limit is stored."""
        created = await user_repository.create_new_user({"username": "edge", "password": "p" * 72})

        assert UserRepository.verify_password(created, "p" * 72) is True

    @pytest.mark.asyncio
    async def test_log_records_carry_operation_scope(self, user_repository, user_fields, caplog):
        """Test that the create log record names the collection and operation."""
        with caplog.at_level(logging.INFO, logger="borrowit.repositories.users"):
            created = await user_repository.create_new_user(user_fields)

        record = [r for r in caplog.records if r.getMessage().startswith("users.create")][-1]
        assert record.collection_name == "users"
        assert record.operation == "users.create"
        assert record.success is True
        assert record.user_id == created.id

    @pytest.mark.asyncio
    async def test_records_create_metric(self, user_repository, user_fields):
        """Test that a successful create is recorded in metrics."""
        await user_repository.create_new_user(user_fields)

        collector = get_metrics_collector()
        assert collector.get_operation_count("users.create") == 1
        assert collector.get_error_count("users.create") == 0


class TestDuplicateUsername:
    """Test username uniqueness."""

    @pytest.mark.asyncio
    async def test_second_create_with_same_username_fails(
        self, user_repository, memory_store, user_fields
    ):
        """Test that the second insert of a username raises DuplicateUserError."""
        await user_repository.ensure_indexes()
        await user_repository.create_new_user(user_fields)

        with pytest.raises(DuplicateUserError) as exc_info:
            await user_repository.create_new_user(dict(user_fields, email="other@b.com"))

        assert exc_info.value.username == "a"
        assert exc_info.value.field == "username"
        assert isinstance(exc_info.value, DuplicateEntityError)
        assert isinstance(exc_info.value, RepositoryError)
        assert await memory_store.count({"username": "a"}) == 1

    @pytest.mark.asyncio
    async def test_duplicate_is_recorded_as_error(self, user_repository, user_fields):
        """Test that a rejected duplicate counts as a failed create."""
        await user_repository.ensure_indexes()
        await user_repository.create_new_user(user_fields)

        with pytest.raises(DuplicateUserError):
            await user_repository.create_new_user(user_fields)

        collector = get_metrics_collector()
        assert collector.get_operation_count("users.create") == 2
        assert collector.get_error_count("users.create") == 1

    @pytest.mark.asyncio
    async def test_uniqueness_holds_without_explicit_ensure_indexes(
        self, user_repository, memory_store, user_fields
    ):
        """Test that the first create sets up the unique index on its own."""
        await user_repository.create_new_user(user_fields)

        with pytest.raises(DuplicateUserError):
            await user_repository.create_new_user(user_fields)

        assert await memory_store.count({"username": "a"}) == 1

    @pytest.mark.asyncio
    async def test_different_usernames_succeed(self, user_repository, make_user_fields):
        """Test that distinct usernames are both stored."""
        await user_repository.ensure_indexes()
        await user_repository.create_new_user(make_user_fields("alice"))
        await user_repository.create_new_user(make_user_fields("bob"))

        users = await user_repository.get_all_users()
        assert [u.username for u in users] == ["alice", "bob"]


class TestGetAllUsers:
    """Test listing users against the in-memory store."""

    @pytest.mark.asyncio
    async def test_empty_store_returns_empty_list(self, user_repository):
        """Test that an empty collection yields an empty list, not an error."""
        users = await user_repository.get_all_users()

        assert users == []

    @pytest.mark.asyncio
    async def test_returns_first_twelve_sorted_by_username(
        self, user_repository, make_user_fields
    ):
        """Test that 20 stored users yield the 12 lowest usernames in order."""
        usernames = [f"user{i:02d}" for i in range(20)]
        shuffled = usernames[:]
        random.Random(7).shuffle(shuffled)
        for username in shuffled:
            await user_repository.create_new_user(make_user_fields(username))

        users = await user_repository.get_all_users()

        assert len(users) == USER_LIST_LIMIT == 12
        assert [u.username for u in users] == usernames[:12]

    @pytest.mark.asyncio
    async def test_fewer_than_limit_returns_all(self, user_repository, make_user_fields):
        """Test that a small collection is returned in full."""
        for username in ("carol", "alice", "bob"):
            await user_repository.create_new_user(make_user_fields(username))

        users = await user_repository.get_all_users()

        assert [u.username for u in users] == ["alice", "bob", "carol"]

    @pytest.mark.asyncio
    async def test_custom_list_limit(self, memory_store, make_user_fields):
        """Test that the list limit is configurable."""
        repo = UserRepository(memory_store, bcrypt_rounds=4, list_limit=2)
        for username in ("c", "b", "a"):
            await repo.create_new_user(make_user_fields(username))

        users = await repo.get_all_users()

        assert [u.username for u in users] == ["a", "b"]


class TestMongoBackedUserRepository:
    """Test driver interaction through a mocked motor collection."""

    @pytest.mark.asyncio
    async def test_create_inserts_one_document(
        self, mongo_user_repository, mock_users_collection, user_fields
    ):
        """Test that create issues a single insert with the user fields."""
        created = await mongo_user_repository.create_new_user(user_fields)

        mock_users_collection.insert_one.assert_awaited_once()
        doc = mock_users_collection.insert_one.call_args[0][0]
        assert "_id" not in doc
        assert doc["username"] == "a"
        assert doc["email"] == "a@b.com"
        assert doc["password"] != "p"
        assert "created_at" in doc
        assert created.id == "65a1f0c2e4b0a1b2c3d4e5f6"

    @pytest.mark.asyncio
    async def test_failed_write_surfaces_to_caller(
        self, mongo_user_repository, mock_users_collection, user_fields
    ):
        """Test that a store failure during create reaches the caller."""
        failure = ServerSelectionTimeoutError("no servers available")
        mock_users_collection.insert_one.side_effect = failure

        with pytest.raises(RepositoryError) as exc_info:
            await mongo_user_repository.create_new_user(user_fields)

        assert exc_info.value.operation == "add"
        assert exc_info.value.collection_name == "users"
        assert exc_info.value.__cause__ is failure
        assert get_metrics_collector().get_error_count("users.create") == 1

    @pytest.mark.asyncio
    async def test_duplicate_key_maps_to_duplicate_user(
        self, mongo_user_repository, mock_users_collection, user_fields
    ):
        """Test that a duplicate key error from the server raises DuplicateUserError."""
        mock_users_collection.insert_one.side_effect = DuplicateKeyError(
            "E11000 duplicate key error",
            code=11000,
            details={"keyValue": {"username": "a"}},
        )

        with pytest.raises(DuplicateUserError) as exc_info:
            await mongo_user_repository.create_new_user(user_fields)

        assert exc_info.value.username == "a"
        assert isinstance(exc_info.value.__cause__, DuplicateEntityError)

    @pytest.mark.asyncio
    async def test_get_all_users_sorts_and_limits(
        self, mongo_user_repository, mock_users_collection
    ):
        """Test that the query sorts ascending by username and limits to 12."""
        cursor = mock_users_collection.find.return_value
        docs = [
            {"_id": ObjectId(), "username": "alice", "password": "x"},
            {"_id": ObjectId(), "username": "bob", "password": "y"},
        ]
        cursor.to_list.return_value = docs

        users = await mongo_user_repository.get_all_users()

        mock_users_collection.find.assert_called_once_with({})
        cursor.sort.assert_called_once_with([("username", 1)])
        cursor.limit.assert_called_once_with(12)
        cursor.to_list.assert_awaited_once_with(length=12)
        assert [u.username for u in users] == ["alice", "bob"]
        assert users[0].id == str(docs[0]["_id"])

    @pytest.mark.asyncio
    async def test_get_all_users_empty(self, mongo_user_repository):
        """Test that an empty result is an empty list."""
        assert await mongo_user_repository.get_all_users() == []

    @pytest.mark.asyncio
    async def test_get_all_users_failure_surfaces(
        self, mongo_user_repository, mock_users_collection
    ):
        """Test that a failed query raises RepositoryError."""
        cursor = mock_users_collection.find.return_value
        cursor.to_list.side_effect = OperationFailure("boom")

        with pytest.raises(RepositoryError) as exc_info:
            await mongo_user_repository.get_all_users()

        assert exc_info.value.operation == "find"
        assert get_metrics_collector().get_error_count("users.list") == 1

    @pytest.mark.asyncio
    async def test_ensure_indexes_creates_unique_username_index(
        self, mongo_user_repository, mock_users_collection
    ):
        """Test that ensure_indexes requests a unique index on username."""
        await mongo_user_repository.ensure_indexes()

        mock_users_collection.create_index.assert_awaited_once_with(
            [("username", 1)], unique=True, name="username_unique"
        )
        assert get_metrics_collector().get_operation_count("users.ensure_indexes") == 1

    @pytest.mark.asyncio
    async def test_create_ensures_index_once(
        self, mongo_user_repository, mock_users_collection, make_user_fields
    ):
        """Test that the unique index is requested on the first create only."""
        await mongo_user_repository.create_new_user(make_user_fields("alice"))
        await mongo_user_repository.create_new_user(make_user_fields("bob"))

        mock_users_collection.create_index.assert_awaited_once_with(
            [("username", 1)], unique=True, name="username_unique"
        )
        assert mock_users_collection.insert_one.await_count == 2

    @pytest.mark.asyncio
    async def test_index_failure_surfaces_from_create(
        self, mongo_user_repository, mock_users_collection, user_fields
    ):
        """Test that a failed index build fails the create without inserting."""
        mock_users_collection.create_index.side_effect = OperationFailure("index build failed")

        with pytest.raises(RepositoryError):
            await mongo_user_repository.create_new_user(user_fields)

        mock_users_collection.insert_one.assert_not_awaited()
        assert get_metrics_collector().get_error_count("users.create") == 1

    @pytest.mark.asyncio
    async def test_from_config_uses_configured_bcrypt_rounds(
        self, monkeypatch, mock_users_collection, user_fields
    ):
        """Test that BCRYPT_ROUNDS sets the cost factor of stored hashes."""
        monkeypatch.setenv("BCRYPT_ROUNDS", "4")
        config = BorrowItConfig(mongo_uri="mongodb://localhost:27017")

        repo = UserRepository.from_config(config, mock_users_collection)
        await repo.create_new_user(user_fields)

        doc = mock_users_collection.insert_one.call_args[0][0]
        assert doc["password"].startswith("$2b$04$")

    @pytest.mark.asyncio
    async def test_find_by_username_queries_username(
        self, mongo_user_repository, mock_users_collection
    ):
        """Test that find_by_username filters on username."""
        mock_users_collection.find_one.return_value = {"_id": "abc", "username": "alice"}

        user = await mongo_user_repository.find_by_username("alice")

        mock_users_collection.find_one.assert_awaited_once_with({"username": "alice"})
        assert user.id == "abc"


class TestVerifyPassword:
    """Test password verification."""

    def test_rejects_non_hash_value(self, caplog):
        """Test that a plaintext stored value never verifies and is reported."""
        user = User(username="legacy", password="plaintext")

        with caplog.at_level(logging.WARNING, logger="borrowit.repositories.users"):
            assert UserRepository.verify_password(user, "plaintext") is False

        assert any("is not a bcrypt hash" in r.getMessage() for r in caplog.records)

    def test_overlong_candidate_is_rejected_quietly(self, caplog):
        """Test that a too-long candidate against a valid hash is just a mismatch."""
        user = User(username="alice", password=hash_password("secret", rounds=4))

        with caplog.at_level(logging.WARNING, logger="borrowit.repositories.users"):
            result = UserRepository.verify_password(user, "p" * 100)

        assert result is False
        assert not any("is not a bcrypt hash" in r.getMessage() for r in caplog.records)

    def test_rejects_missing_password(self):
        """Test that a user without a stored password never verifies."""
        assert UserRepository.verify_password(User(username="nopass"), "") is False
