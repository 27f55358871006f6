#!/usr/bin/env python3
"""
Users Example for BorrowIt

Connects to MongoDB, ensures the username index, creates a user and lists
the first page of users.
"""
import asyncio
import logging
import os

from borrowit import (
    BorrowItConfig,
    ConnectionManager,
    DuplicateUserError,
    RepositoryError,
    UserRepository,
)


async def main():
    """Main example function"""
    logging.basicConfig(level=logging.INFO)

    config = BorrowItConfig(
        mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
    )
    connection = ConnectionManager.from_config(config)
    await connection.initialize()

    try:
        users = UserRepository.from_config(config, connection.users_collection)

        try:
            created = await users.create_new_user(
                {
                    "username": "harman",
                    "password": "change-me",
                    "firstname": "Harman",
                    "email": "harman@example.com",
                }
            )
            print(f"Created user {created.username} ({created.id})")
        except DuplicateUserError as e:
            print(f"Skipped: {e.message}")
        except RepositoryError as e:
            print(f"Could not save user: {e}")
            return

        for user in await users.get_all_users():
            print(f"- {user.username} <{user.email or 'no email'}>")
    finally:
        await connection.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
