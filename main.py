#!/usr/bin/env python3
"""
RoleKeeper -- operator commands for the account store.

The HTTP API cannot create the first superadmin without the shared admin code,
and a locked-out superadmin cannot unlock themselves. These commands work on
the database directly.

Usage:
  python main.py create-user --email root@example.com --first-name Root --last-name Admin --role superadmin
  python main.py unlock --email someone@example.com
  python main.py serve --host 127.0.0.1 --port 8000

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the account store (default: sqlite file next to the code)
  SECRET_KEY     JWT signing key, >= 32 chars (required unless DEBUG=true)
  ADMIN_UNIQUE_CODE  Shared code for admin/superadmin sign-in (required unless DEBUG=true)
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from api.models import SuperAdminCreate
from auth.accounts import insert_account
from auth.errors import AuthError
from auth.lockout import LockoutPolicy
from auth.models import ROLES
from auth.store import AccountStore
from core.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("rolekeeper.cli")


def _read_password(supplied: Optional[str]) -> str:
    """Prompt twice unless the password came on the command line."""
    if supplied:
        return supplied
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        raise SystemExit("  [!] Passwords do not match.")
    return first


def create_user(store: AccountStore, args: argparse.Namespace) -> int:
    """Create an account after the same field checks the API applies."""
    try:
        body = SuperAdminCreate(
            email=args.email,
            first_name=args.first_name,
            last_name=args.last_name,
            password=_read_password(args.password),
            role=args.role,
        )
    except ValidationError as exc:
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"])
            print(f"  [!] {field}: {err['msg']}")
        return 1
    account = insert_account(store, body.to_registration())
    print(f"  Created {account.role} account {account.email} (id {account.id}).")
    return 0


def unlock(store: AccountStore, args: argparse.Namespace) -> int:
    settings = get_settings()
    account = store.get_by_email(args.email)
    if account is None:
        print(f"  [!] No account with email '{args.email}'.")
        return 1
    policy = LockoutPolicy(max_attempts=settings.max_login_attempts, lock_seconds=settings.lock_duration_seconds)
    policy.reset(store, account.id)
    logger.info("Account %s unlocked from the command line", account.id)
    print(f"  Unlocked {account.email}.")
    return 0


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rolekeeper",
        description="Operator commands for the RoleKeeper account service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_create = sub.add_parser("create-user", help="Create an account with any role (e.g. the first superadmin)")
    p_create.add_argument("--email", required=True)
    p_create.add_argument("--first-name", required=True)
    p_create.add_argument("--last-name", required=True)
    p_create.add_argument("--role", choices=ROLES, default="superadmin")
    p_create.add_argument(
        "--password",
        default=None,
        help="Password for the new account. Prompted for when omitted (preferred: keeps it out of shell history)",
    )

    p_unlock = sub.add_parser("unlock", help="Clear the failed-attempt counter and lock on an account")
    p_unlock.add_argument("--email", required=True)

    p_serve = sub.add_parser("serve", help="Run the API with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    if args.command == "serve":
        return serve(args)

    store = AccountStore(get_settings().database_url)
    try:
        if args.command == "create-user":
            return create_user(store, args)
        return unlock(store, args)
    except AuthError as exc:
        print(f"  [!] {exc.message} ({exc.code})")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
