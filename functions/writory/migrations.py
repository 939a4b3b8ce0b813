"""
Runs the Alembic revision chain. This is the only way the production schema
changes; there are no ad-hoc ALTER TABLE scripts.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

logger = logging.getLogger(__name__)

FUNCTIONS_ROOT = Path(__file__).resolve().parents[1]


def alembic_config(database_url: str) -> Config:
    config = Config(str(FUNCTIONS_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(FUNCTIONS_ROOT / "alembic"))
    # Percent signs in passwords must be escaped for ConfigParser.
    config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    # Keep the application's logging configuration intact.
    config.attributes["configure_logger"] = False
    return config


def run_migrations(database_url: str, revision: str = "head") -> None:
    logger.info("Running database migrations up to %s", revision)
    command.upgrade(alembic_config(database_url), revision)
