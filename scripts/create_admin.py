#!/usr/bin/env python3
"""
Create an admin account directly in the database.

Registering admins through the API needs an existing admin, so the
first account has to come from here.

Usage:
    python scripts/create_admin.py --name "Jane Doe" --email jane@example.com
    python scripts/create_admin.py --email ops@example.com --role finance --dry-run

Requires:
    - DATABASE_URL in the environment or .env (defaults to local SQLite)
"""

import getpass
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.config.settings import get_settings
from src.core.billing.directory import AdminDirectory
from src.core.billing.errors import BillingError
from src.core.billing.models import AdminRole
from src.infrastructure.database.client import DatabaseConnectionError, connect, mask_url
from src.infrastructure.database.unit_of_work import SqlAlchemyUnitOfWork
from src.infrastructure.security import BcryptPasswordHasher


def create_admin(name: str, email: str, password: str, role: str, dry_run: bool = False) -> bool:
    """Create the admin. Returns True on success."""
    settings = get_settings()

    if dry_run:
        print("\n=== DRY RUN - No data will be inserted ===\n")
        print(f"Would create {role} '{name}' <{email}>")
        print(f"Database: {mask_url(settings.database_url)}")
        return True

    try:
        print(f"Connecting to {mask_url(settings.database_url)}")
        database = connect(settings.database_url, echo=settings.database_echo, create_schema=True)
    except DatabaseConnectionError as e:
        print(f"ERROR connecting to database: {e}")
        return False

    try:
        with SqlAlchemyUnitOfWork.from_database(database) as uow:
            directory = AdminDirectory(uow, BcryptPasswordHasher(rounds=settings.bcrypt_rounds))
            admin = directory.register(name=name, email=email, password=password, role=role)
    except BillingError as e:
        print(f"ERROR: {e.message}")
        return False
    finally:
        database.dispose()

    print(f"[OK] Created {admin.role.value} #{admin.id}: {admin.name} <{admin.email}>")
    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Create a Super Sheets admin account')
    parser.add_argument('--name', default='Admin', help='Display name')
    parser.add_argument('--email', required=True, help='Login email')
    parser.add_argument('--password', help='Password (prompted if omitted)')
    parser.add_argument(
        '--role',
        default=AdminRole.ADMIN.value,
        choices=[role.value for role in AdminRole],
        help='Back-office role'
    )
    parser.add_argument('--dry-run', action='store_true', help='Show what would be created')

    args = parser.parse_args()

    password = args.password
    if not password and not args.dry_run:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("ERROR: Passwords do not match")
            sys.exit(1)

    if not args.dry_run and not password:
        print("ERROR: Password cannot be empty")
        sys.exit(1)

    success = create_admin(args.name, args.email, password or "", args.role, dry_run=args.dry_run)
    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
