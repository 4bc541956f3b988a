#!/usr/bin/env python3
"""
Create the ClipShare tables in Snowflake and seed the end-to-end test user.

Safe to run repeatedly: tables are created only if missing and the user
row is inserted only if absent.

Usage:
    python scripts/seed_users.py
    python scripts/seed_users.py --dry-run

Requires:
    - .env file with Snowflake credentials
"""

import argparse
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from clipshare.config.settings import get_settings
from clipshare.core.videos.models import UserProfile
from clipshare.infrastructure.snowflake.client import (
    SnowflakeConfig,
    SnowflakeConnectionError,
    create_snowflake_connection,
)
from clipshare.infrastructure.snowflake.repositories.user_profiles import UserProfileRepository

E2E_USER = UserProfile(
    id="00000000-0000-0000-0000-000000000000",
    email="account@e2e.net",
    name="E2E Account",
)

CREATE_TABLES = [
    """
    CREATE TABLE IF NOT EXISTS user_profiles (
        user_id VARCHAR(36) PRIMARY KEY,
        email VARCHAR(320) UNIQUE,
        name VARCHAR(255),
        avatar_url VARCHAR(2048),
        subscription_status VARCHAR(64),
        created_at TIMESTAMP_TZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS videos (
        video_id VARCHAR(36) PRIMARY KEY,
        owner_id VARCHAR(36) NOT NULL REFERENCES user_profiles(user_id),
        title VARCHAR(255) NOT NULL,
        sharing BOOLEAN NOT NULL DEFAULT FALSE,
        delete_after_link_expires BOOLEAN NOT NULL DEFAULT FALSE,
        share_link_expires_at TIMESTAMP_TZ,
        created_at TIMESTAMP_TZ NOT NULL,
        updated_at TIMESTAMP_TZ NOT NULL
    )
    """,
]


def seed(dry_run: bool = False, mock_mode: bool = False) -> bool:
    """Create tables and the E2E user. Returns True if the user was inserted."""
    settings = get_settings()

    if dry_run:
        print("\n=== DRY RUN - No data will be written ===\n")
        for statement in CREATE_TABLES:
            print(" ".join(statement.split()))
        print(f"Would seed user: {E2E_USER.email} ({E2E_USER.id})")
        return False

    config = None
    if not mock_mode:
        if not settings.snowflake_account or not settings.snowflake_user:
            print("ERROR: Missing SNOWFLAKE_ACCOUNT or SNOWFLAKE_USER")
            sys.exit(1)

        config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            private_key_base64=settings.snowflake_private_key_base64,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            warehouse=settings.snowflake_warehouse,
            role=settings.snowflake_role,
        )
        print(f"Connecting to Snowflake account: {settings.snowflake_account}")

    with create_snowflake_connection(config=config, mock_mode=mock_mode) as conn:
        cursor = conn.cursor()
        try:
            for statement in CREATE_TABLES:
                cursor.execute(statement)
            conn.commit()
        finally:
            cursor.close()
        print("[OK] Tables ready")

        inserted = UserProfileRepository(conn).create_if_absent(E2E_USER)

    if inserted:
        print(f"[OK] Seeded user: {E2E_USER.email}")
    else:
        print(f"[OK] User already present: {E2E_USER.email}")

    return inserted


def main():
    parser = argparse.ArgumentParser(description='Create ClipShare tables and seed the E2E user')
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print what would be done without touching the database'
    )
    parser.add_argument(
        '--mock',
        action='store_true',
        help='Run against the in-memory mock database'
    )
    args = parser.parse_args()

    try:
        seed(dry_run=args.dry_run, mock_mode=args.mock)
    except SnowflakeConnectionError as e:
        print(f"ERROR connecting to Snowflake: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
