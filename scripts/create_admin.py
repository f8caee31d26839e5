#!/usr/bin/env python3
"""
Create the first admin account.

Usage:
  python scripts/create_admin.py --email admin@example.com --name "Admin"
  # Password is prompted for unless --password is given.
  # DATABASE_URL and SECRET_KEY are read from .env (or export).
"""
import argparse
import asyncio
import getpass
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utility_billing.core.exceptions import DuplicateEmail
from utility_billing.database import AsyncSessionLocal, close_db
from utility_billing.models.enums import UserRole
from utility_billing.services.user_service import UserService


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--password", help="Prompted for when omitted")
    return parser.parse_args(argv)


async def create_admin(name: str, email: str, password: str) -> int:
    async with AsyncSessionLocal() as db:
        user = await UserService.create_user(
            db, name=name, email=email, password=password, role=UserRole.ADMIN
        )
        return user.id


def main(argv=None) -> int:
    args = parse_args(argv)
    password = args.password or getpass.getpass("Password: ")
    if len(password) < 6:
        print("ERROR: password must be at least 6 characters.")
        return 1

    async def run() -> int:
        try:
            return await create_admin(args.name, args.email, password)
        finally:
            await close_db()

    try:
        user_id = asyncio.run(run())
    except DuplicateEmail:
        print(f"ERROR: {args.email} is already registered.")
        return 1
    print(f"SUCCESS: admin {args.email} created with id {user_id}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
