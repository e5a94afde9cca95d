#!/usr/bin/env python3
"""
Create (or promote) a support admin account.

An existing user with the same email is promoted to admin and gets the new
password.

Usage:
    python scripts/create_admin.py --email admin@example.com --name "Support Admin"

The password is read from --password or prompted for.
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from support_chat.core.config import settings
from support_chat.core.security import hash_password
from support_chat.db.mongodb import close_mongodb, connect_mongodb, get_mongodb
from support_chat.domains.user.repository import MongoUserRepository


async def create_admin(name: str, email: str, password: str) -> None:
    """Upsert the admin account."""
    await connect_mongodb()
    try:
        repository = MongoUserRepository(get_mongodb())
        admin = await repository.upsert_admin(
            name=name,
            email=email,
            password_hash=hash_password(password),
        )
    finally:
        await close_mongodb()

    print("Admin account ready:")
    print(f"  ID: {admin.id}")
    print(f"  Email: {admin.email}")
    print(f"  Role: {admin.role}")
    print("\nLogin:")
    print(f"  POST {settings.api_prefix}/auth/login")
    print(f'  {{"email": "{admin.email}", "password": "<password>"}}')


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Create a support admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Support Admin")
    parser.add_argument("--password")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if not password:
        parser.error("password must not be empty")

    print(f"Environment: {settings.environment}")
    print(f"Database: {settings.mongodb_url}/{settings.mongodb_database}")
    print()

    asyncio.run(create_admin(args.name, args.email, password))


if __name__ == "__main__":
    main()
