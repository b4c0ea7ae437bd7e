#!/usr/bin/env python3
"""
Load a JSON array of catalog records into the database.

Usage:
    python seed_catalog.py books.json

Each record looks like::

    {"title": "...", "description": "...", "author": "...",
     "genres": ["...", "..."], "published_date": "1965-08-01"}
"""

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError
from sqlmodel import Session

from app.core.logging import get_logger, setup_logging
from app.db.session import engine, init_db
from app.services.seed_service import SeedRecord, seed_books

logger = get_logger("seed_catalog")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed the book catalog from a JSON file.")
    parser.add_argument("path", type=Path, help="JSON file holding an array of book records")
    args = parser.parse_args(argv)

    setup_logging()

    try:
        raw = json.loads(args.path.read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise ValueError("expected a JSON array of records")
        records = [SeedRecord.model_validate(item) for item in raw]
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Cannot read {args.path}: {e}")
        return 1

    init_db(engine)
    with Session(engine) as session:
        created = seed_books(session, records)

    print(f"Seeded {created} of {len(records)} books from {args.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
