#!/usr/bin/env python3
"""Manage provider credentials and the cron secret in the OS keychain.

Values stored here take priority over environment variables and ``.env``.
Secrets are never printed; ``list`` shows names only.

Usage:
    python -m scripts.manage_credentials list
    python -m scripts.manage_credentials set PLAID_SECRET
    python -m scripts.manage_credentials delete CRON_SECRET
    python -m scripts.manage_credentials import-env --env-file backend/.env
"""

import argparse
import getpass
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import dotenv_values

from services.credential_manager import (
    CREDENTIAL_KEYS,
    delete_credential,
    get_credential,
    list_stored_keys,
    set_credential,
)


def cmd_list(args) -> int:
    stored = set(list_stored_keys())
    for key in sorted(CREDENTIAL_KEYS):
        print(f"  {'+' if key in stored else '-'} {key}")
    return 0


def cmd_set(args) -> int:
    value = getpass.getpass(f"{args.key}: ")
    if not set_credential(args.key, value):
        print(f"Failed to store {args.key}")
        return 1
    print(f"Stored {args.key}")
    return 0


def cmd_delete(args) -> int:
    if not delete_credential(args.key):
        print(f"{args.key} was not deleted (not stored or keychain unavailable)")
        return 1
    print(f"Deleted {args.key}")
    return 0


def cmd_import_env(args) -> int:
    """Copy every non-empty credential from a ``.env`` file into the keychain."""
    if not args.env_file.exists():
        print(f"No .env file found at {args.env_file}")
        return 1

    values = dotenv_values(args.env_file)
    failed = 0
    for key in sorted(CREDENTIAL_KEYS):
        value = values.get(key)
        if not value:
            print(f"  - {key} (empty or missing)")
        elif get_credential(key) == value:
            print(f"  = {key} (already stored)")
        elif set_credential(key, value):
            print(f"  + {key}")
        else:
            print(f"  ! {key}")
            failed += 1
    return 1 if failed else 0


def main():
    parser = argparse.ArgumentParser(description="Manage keychain credentials")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show which credentials are stored").set_defaults(func=cmd_list)

    set_parser = sub.add_parser("set", help="Prompt for a value and store it")
    set_parser.add_argument("key", choices=sorted(CREDENTIAL_KEYS))
    set_parser.set_defaults(func=cmd_set)

    delete_parser = sub.add_parser("delete", help="Remove a stored credential")
    delete_parser.add_argument("key", choices=sorted(CREDENTIAL_KEYS))
    delete_parser.set_defaults(func=cmd_delete)

    import_parser = sub.add_parser("import-env", help="Store credentials found in a .env file")
    import_parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(__file__).parent.parent / ".env",
        help="Path to .env file (default: backend/.env)",
    )
    import_parser.set_defaults(func=cmd_import_env)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
