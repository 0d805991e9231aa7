"""
Administrative commands for the blog backend.

    python scripts/manage.py init-admin
    python scripts/manage.py reset-admin-password --password NEW
    python scripts/manage.py seed

Credentials default to ADMIN_USERNAME / ADMIN_PASSWORD from the environment.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from blog_backend import errors
from blog_backend.auth import ensure_admin, reset_admin_password
from blog_backend.config import get_settings
from blog_backend.content import CategoryCatalog
from blog_backend.dependencies import get_db_client


logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-admin", help="Create the admin user if missing")
    reset_parser = subparsers.add_parser(
        "reset-admin-password", help="Replace the admin password hash"
    )
    for sub in (init_parser, reset_parser):
        sub.add_argument("--username", default=settings.admin_username)
        sub.add_argument("--password", default=settings.admin_password)
    subparsers.add_parser("seed", help="Create the default categories that are missing")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    db = get_db_client()

    if args.command == "init-admin":
        if not ensure_admin(db, args.username, args.password):
            logger.info("Admin %s already exists", args.username)
        return 0

    if args.command == "reset-admin-password":
        try:
            reset_admin_password(db, args.username, args.password)
        except errors.NotFound:
            logger.error("Admin %s not found; run init-admin first", args.username)
            return 1
        return 0

    created = CategoryCatalog(db).seed()
    logger.info("Seeded %d categories", created)
    return 0


if __name__ == "__main__":
    sys.exit(main())
