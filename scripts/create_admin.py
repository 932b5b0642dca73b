#!/usr/bin/env python
"""CLI utility to create or promote the platform administrator."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import Optional

from estateshare.core.config import get_settings
from estateshare.core.database import create_schema, session_scope
from estateshare.schemas.auth import PASSWORD_PATTERN, PASSWORD_RULE_MESSAGE
from estateshare.services.users import UserService


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Create or promote the platform administrator.")
    parser.add_argument("--email", default=settings.admin_email, help="Admin email (defaults to ESH_ADMIN_EMAIL).")
    parser.add_argument("--name", default=settings.admin_name, help="Display name.")
    parser.add_argument(
        "--password",
        default=settings.admin_password,
        help="Admin password (defaults to ESH_ADMIN_PASSWORD; prompted when unset).",
    )
    parser.add_argument("--create-schema", action="store_true", help="Create tables before provisioning.")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.email:
        logging.error("An admin email is required (--email or ESH_ADMIN_EMAIL)")
        return 2
    password = args.password or getpass.getpass("Admin password: ")
    if not PASSWORD_PATTERN.match(password):
        logging.error(PASSWORD_RULE_MESSAGE)
        return 2

    if args.create_schema:
        create_schema()
    with session_scope() as session:
        admin = UserService(session).ensure_admin(email=args.email, password=password, name=args.name)
        admin_id = admin.id

    logging.info("Administrator %s is ready (id=%s)", args.email, admin_id)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
