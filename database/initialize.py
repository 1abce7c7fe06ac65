from __future__ import annotations

import argparse
import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

# The models import registers the goals table with SQLAlchemy's metadata.
from database import models  # noqa: F401
from database.session import Base, engine as default_engine


logger = logging.getLogger(__name__)


def init_database(*, drop_existing: bool = False, bind: Optional[Engine] = None) -> None:
    """Create the goals schema on the configured engine."""
    target = bind if bind is not None else default_engine
    try:
        if drop_existing:
            logger.warning("Dropping existing tables before re-creating schema.")
            Base.metadata.drop_all(bind=target)
        Base.metadata.create_all(bind=target)
    except SQLAlchemyError as exc:
        logger.exception("Failed to initialise database schema: %s", exc)
        raise
    else:
        logger.info("Database schema initialised successfully.")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Initialise the goals schema for the goal checkout service."
    )
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating the schema.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = _parse_args(argv)
    init_database(drop_existing=args.drop_existing)


if __name__ == "__main__":
    main()
