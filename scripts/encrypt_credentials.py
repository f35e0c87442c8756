"""Encrypt stored subscriber passwords and NAS shared secrets.

Values written while no key was configured are kept as ``plain:<value>``.
Run this once after setting CREDENTIAL_ENCRYPTION_KEY to convert them.

Usage:
    # Dry run (show what would be changed)
    python scripts/encrypt_credentials.py --dry-run

    # Execute encryption
    python scripts/encrypt_credentials.py --execute
"""

import argparse
import sys

from dotenv import load_dotenv

from app.db import SessionLocal
from app.models.catalog import NasDevice
from app.models.subscriber import Subscriber
from app.services.credential_crypto import (
    encrypt_stored_credential,
    get_encryption_key,
    needs_encryption,
)

_TARGETS = (
    (Subscriber, "radius_password", "username"),
    (NasDevice, "secret", "nas_ip"),
)


def parse_args():
    parser = argparse.ArgumentParser(
        description="Encrypt stored subscriber and NAS credentials."
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be encrypted without making changes",
    )
    group.add_argument(
        "--execute",
        action="store_true",
        help="Actually encrypt credentials in the database",
    )
    return parser.parse_args()


def main():
    load_dotenv()
    args = parse_args()

    if not get_encryption_key():
        print("ERROR: CREDENTIAL_ENCRYPTION_KEY is not configured.")
        print("Generate a new key with:")
        print('  python -c "from app.services.credential_crypto import generate_encryption_key; print(generate_encryption_key())"')
        sys.exit(1)

    db = SessionLocal()
    try:
        for model, field, label in _TARGETS:
            checked = converted = 0
            for row in db.query(model).all():
                checked += 1
                value = getattr(row, field)
                if not needs_encryption(value):
                    continue
                converted += 1
                if args.execute:
                    setattr(row, field, encrypt_stored_credential(value))
                else:
                    print(f"[DRY RUN] {model.__tablename__} {getattr(row, label)}: {field} would be encrypted")
            if args.execute:
                db.commit()
            verb = "would be encrypted" if args.dry_run else "encrypted"
            print(f"{model.__tablename__}: {checked} checked, {converted} {verb}")
        if args.dry_run:
            print()
            print("To apply these changes, run with --execute flag")
    finally:
        db.close()


if __name__ == "__main__":
    main()
