#!/usr/bin/env python3
"""Seed login credentials for a user.

Usage:
    # Using environment variables:
    BOOTSTRAP_USER_ID=42 BOOTSTRAP_PASSWORD='s3cret!' python scripts/bootstrap_user.py

    # Or with command line args:
    python scripts/bootstrap_user.py --user-id 42 --password 's3cret!'

Environment Variables:
    BOOTSTRAP_USER_ID: Numeric identity to seed
    BOOTSTRAP_PASSWORD: Password for that identity
    REDIS_URL: Redis holding the credential hashes the API reads
    USE_MEMORY_STORE: When true, records only live as long as this process;
        set BOOTSTRAP_USER_ID/BOOTSTRAP_PASSWORD on the server instead
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def bootstrap_user(user_id: int, password: str, dry_run: bool = False) -> dict:
    """Create or replace the credential record for ``user_id``.

    Returns:
        dict with user_id and status ('created', 'updated' or 'dry_run')
    """
    # Import here to avoid loading config before env vars are set
    from tokenkeep.service.runtime import get_runtime

    runtime = get_runtime()
    existing = runtime.credentials.get_credentials(user_id)

    if dry_run:
        action = "replace" if existing else "create"
        print(f"[DRY RUN] Would {action} credentials for user {user_id}")
        return {"user_id": user_id, "status": "dry_run"}

    runtime.register_user(user_id, password)
    status = "updated" if existing else "created"
    print(f"Credentials {status} for user {user_id}")
    return {"user_id": user_id, "status": status}


def main():
    parser = argparse.ArgumentParser(
        description="Seed login credentials for tokenkeep",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--user-id",
        type=int,
        default=os.environ.get("BOOTSTRAP_USER_ID"),
        help="User id (or set BOOTSTRAP_USER_ID env var)",
    )
    parser.add_argument(
        "--password",
        default=os.environ.get("BOOTSTRAP_PASSWORD"),
        help="Password (or set BOOTSTRAP_PASSWORD env var)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )

    args = parser.parse_args()

    if args.user_id is None:
        print("Error: --user-id or BOOTSTRAP_USER_ID environment variable required")
        sys.exit(1)

    if not args.password:
        print("Error: --password or BOOTSTRAP_PASSWORD environment variable required")
        sys.exit(1)

    if os.environ.get("USE_MEMORY_STORE", "").lower() in {"1", "true", "yes", "on"}:
        print("Note: USE_MEMORY_STORE is set; the record is lost when this script exits")

    try:
        result = bootstrap_user(args.user_id, args.password, args.dry_run)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)

    if result["status"] in {"created", "updated"}:
        print(f"\nUser {result['user_id']} can now log in at POST /v1/auth/login")


if __name__ == "__main__":
    main()
