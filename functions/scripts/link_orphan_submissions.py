"""
Links submissions that were made without a signed-in account to the user
who owns the same email address.
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
    parser = argparse.ArgumentParser(description="Link orphan submissions to users")
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
    db = SqlDbClient(database_url, create_tables=False)
    linked = db.link_orphan_submissions()
    logger.info("Linked %d submission(s) to existing users", linked)
    return 0


if __name__ == "__main__":
    sys.exit(main())
