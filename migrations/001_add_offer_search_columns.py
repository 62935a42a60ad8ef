#!/usr/bin/env python3
"""
Migration: Add search columns to the offer table

Adds the weighted full-text search_vector (GIN indexed), the geo_point
geography column (GiST indexed) and the trigger that keeps both in sync
with title/description/tags and latitude/longitude. Existing rows are
backfilled by re-firing the trigger.

Date: 2026-10-12
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import create_engine, text
from database.database import DATABASE_URL
from database.search_schema import (
    backfill_statement,
    drop_statements,
    search_support_statements,
)


def migrate(text_search_config: str = "portuguese"):
    """Add search columns, indexes and the sync trigger to the offer table."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        # Check the table exists
        result = conn.execute(text("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_name = 'offer'
        """))

        if not result.fetchone():
            print("Table 'offer' does not exist. Run database/init_db.py instead. Skipping migration.")
            return

        for statement in search_support_statements(text_search_config):
            conn.execute(statement)

        updated = conn.execute(backfill_statement()).rowcount
        conn.commit()
        print("Successfully added 'search_vector' and 'geo_point' columns to offer table")
        print(f"Backfilled {updated} existing offers")


def rollback():
    """Remove search columns, indexes and the sync trigger from the offer table."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        for statement in drop_statements():
            conn.execute(statement)

        conn.commit()
        print("Successfully removed search columns from offer table")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Migration for adding offer search columns")
    parser.add_argument("--rollback", action="store_true", help="Rollback the migration")
    parser.add_argument("--text-search-config", default="portuguese", help="PostgreSQL text search configuration")

    args = parser.parse_args()

    if args.rollback:
        rollback()
    else:
        migrate(args.text_search_config)
