"""
BorrowIt Repository Pattern

Usage:
    from borrowit.repositories import UserRepository

    users = UserRepository.from_config(config, connection.users_collection)
    created = await users.create_new_user({"username": "a", "password": "p"})
    page = await users.get_all_users()
"""

from .base import Entity, InMemoryRepository, Repository
from .mongo import MongoRepository
from .users import User, UserFields, UserRepository, hash_password

__all__ = [
    "Repository",
    "Entity",
    "InMemoryRepository",
    "MongoRepository",
    "User",
    "UserFields",
    "UserRepository",
    "hash_password",
]
