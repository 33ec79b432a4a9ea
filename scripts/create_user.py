"""Utility to create a console user from the command line.

Run with:

    python -m scripts.create_user --username alice --admin

The password is read from --password or prompted for interactively.
Honours USERS_FILE / BCRYPT_ROUNDS like the API server.
"""

from __future__ import annotations

import argparse
import getpass
import json
import sys


def get_auth_manager():
    from pentest_console.auth import AuthManager  # Lazy import to ensure env is loaded
    from pentest_console.config import CONFIG, reload_config

    reload_config()
    manager = AuthManager(CONFIG.users_file, bcrypt_rounds=CONFIG.bcrypt_rounds)
    manager.initialize()
    return manager


def create_user(username: str, password: str, *, email: str | None, is_admin: bool) -> int:
    from pentest_console.auth import UserConflictError

    if len(password) < 8:
        print("Password must be at least 8 characters", file=sys.stderr)
        return 1

    manager = get_auth_manager()
    try:
        user = manager.create_user(username, password, email=email, is_admin=is_admin)
    except UserConflictError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print("Created user:\n" + json.dumps(user.to_payload(), indent=2, sort_keys=True))
    return 0


def main() -> int:
    from dotenv import load_dotenv

    load_dotenv()

    parser = argparse.ArgumentParser(description="Create a pentest console user")
    parser.add_argument("--username", required=True, help="Login name")
    parser.add_argument("--password", help="Password (prompted when omitted)")
    parser.add_argument("--email", default=None, help="Optional contact email")
    parser.add_argument("--admin", action="store_true", help="Grant user management rights")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    return create_user(args.username, password, email=args.email, is_admin=args.admin)


if __name__ == "__main__":
    raise SystemExit(main())
