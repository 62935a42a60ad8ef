"""
Search-support DDL for the offer table.

The ORM maps search_vector but not geo_point; both are maintained by the
offer_search_fields_sync trigger so every write path keeps them consistent:

- search_vector: title (weight A), description (B), tags (D)
- geo_point: geography(Point, 4326) built from longitude/latitude, NULL
  unless both coordinates are present
"""

import re
from typing import List

from sqlalchemy import text

TRIGGER_NAME = "offer_search_fields_sync"
GEO_INDEX_NAME = "idx_offer_geo_point"
SEARCH_INDEX_NAME = "idx_offer_search_vector"

_REGCONFIG_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


def _checked_regconfig(text_search_config: str) -> str:
    if not _REGCONFIG_RE.match(text_search_config or ""):
        raise ValueError(f"Invalid text search configuration name: {text_search_config!r}")
    return text_search_config


def sync_function_sql(text_search_config: str = "portuguese") -> str:
    cfg = _checked_regconfig(text_search_config)
    return f"""
        CREATE OR REPLACE FUNCTION {TRIGGER_NAME}() RETURNS trigger AS $$
        BEGIN
            NEW.search_vector :=
                setweight(to_tsvector('{cfg}'::regconfig, coalesce(NEW.title, '')), 'A') ||
                setweight(to_tsvector('{cfg}'::regconfig, coalesce(NEW.description, '')), 'B') ||
                setweight(to_tsvector('{cfg}'::regconfig, coalesce(array_to_string(NEW.tags, ' '), '')), 'D');
            IF NEW.latitude IS NOT NULL AND NEW.longitude IS NOT NULL THEN
                NEW.geo_point := ST_SetSRID(ST_MakePoint(NEW.longitude, NEW.latitude), 4326)::geography;
            ELSE
                NEW.geo_point := NULL;
            END IF;
            RETURN NEW;
        END
        $$ LANGUAGE plpgsql
    """


def search_support_statements(text_search_config: str = "portuguese") -> List:
    """Idempotent statements that add search columns, indexes and the sync trigger."""
    return [
        text("CREATE EXTENSION IF NOT EXISTS postgis"),
        text("ALTER TABLE offer ADD COLUMN IF NOT EXISTS search_vector tsvector"),
        text("ALTER TABLE offer ADD COLUMN IF NOT EXISTS geo_point geography(Point, 4326)"),
        text(f"CREATE INDEX IF NOT EXISTS {SEARCH_INDEX_NAME} ON offer USING GIN (search_vector)"),
        text(f"CREATE INDEX IF NOT EXISTS {GEO_INDEX_NAME} ON offer USING GIST (geo_point)"),
        text(sync_function_sql(text_search_config)),
        text(f"DROP TRIGGER IF EXISTS {TRIGGER_NAME} ON offer"),
        text(f"""
            CREATE TRIGGER {TRIGGER_NAME}
            BEFORE INSERT OR UPDATE ON offer
            FOR EACH ROW EXECUTE FUNCTION {TRIGGER_NAME}()
        """),
    ]


def backfill_statement():
    """Re-fire the sync trigger for rows written before it existed."""
    return text(
        "UPDATE offer SET title = title "
        "WHERE search_vector IS NULL OR (geo_point IS NULL AND latitude IS NOT NULL)"
    )


def drop_statements() -> List:
    return [
        text(f"DROP TRIGGER IF EXISTS {TRIGGER_NAME} ON offer"),
        text(f"DROP FUNCTION IF EXISTS {TRIGGER_NAME}()"),
        text(f"DROP INDEX IF EXISTS {GEO_INDEX_NAME}"),
        text(f"DROP INDEX IF EXISTS {SEARCH_INDEX_NAME}"),
        text("ALTER TABLE offer DROP COLUMN IF EXISTS geo_point"),
        text("ALTER TABLE offer DROP COLUMN IF EXISTS search_vector"),
    ]
