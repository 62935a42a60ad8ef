#!/usr/bin/env python3
"""
Unit tests for the search-support DDL.
"""

import unittest

from database.search_schema import (
    GEO_INDEX_NAME,
    SEARCH_INDEX_NAME,
    TRIGGER_NAME,
    backfill_statement,
    drop_statements,
    search_support_statements,
    sync_function_sql,
)


class TestSyncFunction(unittest.TestCase):

    def test_weights_title_description_tags(self):
        sql = sync_function_sql("portuguese")
        self.assertIn("to_tsvector('portuguese'::regconfig, coalesce(NEW.title, '')), 'A')", sql)
        self.assertIn("coalesce(NEW.description, '')), 'B')", sql)
        self.assertIn("array_to_string(NEW.tags, ' ')", sql)
        self.assertIn("'D')", sql)

    def test_geo_point_is_lng_lat(self):
        sql = sync_function_sql()
        self.assertIn("ST_MakePoint(NEW.longitude, NEW.latitude)", sql)
        self.assertIn("NEW.geo_point := NULL", sql)

    def test_rejects_unsafe_config_names(self):
        for name in ("portuguese'; DROP TABLE offer; --", "Portuguese", "", None, "pt-br"):
            with self.assertRaises(ValueError):
                sync_function_sql(name)

    def test_accepts_plain_names(self):
        self.assertIn("'simple'::regconfig", sync_function_sql("simple"))


class TestStatements(unittest.TestCase):

    def test_install_is_idempotent_sql(self):
        statements = [str(s) for s in search_support_statements()]
        self.assertTrue(statements[0].startswith("CREATE EXTENSION IF NOT EXISTS postgis"))
        self.assertTrue(any("ADD COLUMN IF NOT EXISTS search_vector" in s for s in statements))
        self.assertTrue(any("ADD COLUMN IF NOT EXISTS geo_point geography(Point, 4326)" in s for s in statements))
        self.assertTrue(any(f"CREATE INDEX IF NOT EXISTS {GEO_INDEX_NAME}" in s and "GIST" in s for s in statements))
        self.assertTrue(any(f"CREATE INDEX IF NOT EXISTS {SEARCH_INDEX_NAME}" in s and "GIN" in s for s in statements))

    def test_trigger_replaced_after_function(self):
        statements = [str(s) for s in search_support_statements()]
        function_at = next(i for i, s in enumerate(statements) if "CREATE OR REPLACE FUNCTION" in s)
        drop_at = statements.index(f"DROP TRIGGER IF EXISTS {TRIGGER_NAME} ON offer")
        create_at = next(i for i, s in enumerate(statements) if "CREATE TRIGGER" in s)
        self.assertLess(function_at, drop_at)
        self.assertLess(drop_at, create_at)
        self.assertIn("BEFORE INSERT OR UPDATE ON offer", statements[create_at])

    def test_backfill_targets_unsynced_rows(self):
        sql = str(backfill_statement())
        self.assertIn("search_vector IS NULL OR (geo_point IS NULL AND latitude IS NOT NULL)", sql)

    def test_drop_removes_trigger_before_columns(self):
        statements = [str(s) for s in drop_statements()]
        self.assertIn("TRIGGER", statements[0])
        self.assertIn("DROP COLUMN IF EXISTS search_vector", statements[-1])


if __name__ == '__main__':
    unittest.main()
