#!/usr/bin/env python3
"""
Unit tests for read_only_scope (mocked session).
"""

import unittest
from unittest.mock import MagicMock

from core.search.engine import QueryCanceller
from core.search.errors import SearchCancelledError
from database.database import read_only_scope


def executed_sql(session):
    return [str(c[0][0]) for c in session.execute.call_args_list]


class TestReadOnlyScope(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.factory = MagicMock(return_value=self.session)
        self.connection = self.session.connection.return_value
        self.dbapi = self.connection.connection.dbapi_connection

    def test_read_only_with_statement_timeout(self):
        with read_only_scope(self.factory, statement_timeout_ms=1500):
            pass

        self.assertEqual(executed_sql(self.session), [
            "SET TRANSACTION READ ONLY",
            "SET LOCAL statement_timeout = 1500",
        ])
        self.session.rollback.assert_called_once()
        self.session.close.assert_called_once()
        self.session.commit.assert_not_called()

    def test_connection_registered_for_scope_lifetime(self):
        canceller = QueryCanceller()

        with read_only_scope(self.factory, canceller=canceller):
            canceller_connections = set(canceller._connections)

        self.assertEqual(canceller_connections, {self.dbapi})
        self.assertEqual(canceller._connections, set())

    def test_completed_scope_returns_connection_to_pool(self):
        with read_only_scope(self.factory, canceller=QueryCanceller()):
            pass

        self.connection.invalidate.assert_not_called()
        self.session.close.assert_called_once()

    def test_cancelled_scope_invalidates_connection(self):
        canceller = QueryCanceller()

        with read_only_scope(self.factory, canceller=canceller):
            canceller.cancel()

        self.dbapi.cancel.assert_called_once()
        self.connection.invalidate.assert_called_once()
        self.session.rollback.assert_called_once()
        self.session.close.assert_called_once()

    def test_cancelled_scope_invalidates_on_error(self):
        canceller = QueryCanceller()

        with self.assertRaises(RuntimeError):
            with read_only_scope(self.factory, canceller=canceller):
                canceller.cancel()
                raise RuntimeError("statement aborted")

        self.connection.invalidate.assert_called_once()

    def test_already_cancelled_never_registers(self):
        canceller = QueryCanceller()
        canceller.cancel()

        with self.assertRaises(SearchCancelledError):
            with read_only_scope(self.factory, canceller=canceller):
                self.fail("scope body must not run")

        self.dbapi.cancel.assert_not_called()
        self.connection.invalidate.assert_not_called()
        self.session.close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
