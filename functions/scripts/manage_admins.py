"""
CLI to grant, revoke and list admin access.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from writory.config import get_settings
from writory.db import SqlDbClient

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Manage admin users")
    parser.add_argument(
        "action",
        choices=("add", "remove", "list"),
        help="What to do",
    )
    parser.add_argument(
        "emails",
        nargs="*",
        help="Admin email addresses (for add/remove)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Override DATABASE_URL",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    database_url = args.database_url or get_settings().database_url
    if not database_url:
        logger.error("DATABASE_URL is not set")
        return 1
    if args.action != "list" and not args.emails:
        parser.error(f"{args.action} needs at least one email")

    db = SqlDbClient(database_url, create_tables=False)
    if args.action == "add":
        for email in args.emails:
            record = db.add_admin(email)
            logger.info("Granted admin to %s", record.email)
    elif args.action == "remove":
        for email in args.emails:
            if db.remove_admin(email):
                logger.info("Revoked admin from %s", email)
            else:
                logger.warning("%s is not an admin", email)
    else:
        for record in db.list_admins():
            print(f"{record.email}\t{record.role}\t{record.created_at.isoformat()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
