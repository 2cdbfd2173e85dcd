"""Tests for the pooled PostgreSQL database backend."""

import os
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase
from psycopg2 import pool

from django_project.db import PostgreSQLPooledBackend

SETTINGS = {
    "HOST": "localhost",
    "PORT": 5432,
    "NAME": "coparent",
    "USER": "postgres",
    "PASSWORD": "secret",
}


def make_backend(settings=None):
    backend = PostgreSQLPooledBackend(dict(settings or SETTINGS))
    backend.settings_dict = dict(settings or SETTINGS)
    return backend


class PooledBackendConfigTests(SimpleTestCase):
    def test_pool_key(self):
        self.assertEqual(
            make_backend()._get_pool_key(), ("localhost", 5432, "coparent", "postgres")
        )

    def test_dsn(self):
        dsn = make_backend()._get_dsn()
        self.assertIn("dbname=coparent", dsn)
        self.assertIn("password=secret", dsn)
        self.assertIn("port=5432", dsn)

    def test_dsn_default_port(self):
        backend = make_backend({"NAME": "coparent", "HOST": "db", "PORT": ""})
        self.assertIn("port=5432", backend._get_dsn())

    def test_pool_sizes_from_settings(self):
        backend = make_backend({**SETTINGS, "POOL": {"MIN_SIZE": 4, "MAX_SIZE": 8}})
        self.assertEqual(backend._get_pool_sizes(), (4, 8))

    def test_pool_sizes_from_environment(self):
        with patch.dict(os.environ, {"DB_POOL_MIN_SIZE": "3", "DB_POOL_MAX_SIZE": "20"}):
            self.assertEqual(make_backend()._get_pool_sizes(), (3, 20))

    def test_max_size_never_below_min(self):
        backend = make_backend({**SETTINGS, "POOL": {"MIN_SIZE": 5, "MAX_SIZE": 1}})
        self.assertEqual(backend._get_pool_sizes(), (5, 5))


class PooledBackendConnectionTests(SimpleTestCase):
    def setUp(self):
        PostgreSQLPooledBackend._pools.clear()
        self.addCleanup(PostgreSQLPooledBackend._pools.clear)

    @patch("django_project.db.pool.ThreadedConnectionPool")
    def test_pool_is_created_once_per_database(self, mock_pool_class):
        first = make_backend().get_pool()
        second = make_backend().get_pool()

        self.assertIs(first, second)
        mock_pool_class.assert_called_once()

    @patch("django_project.db.pool.ThreadedConnectionPool", side_effect=Exception("refused"))
    def test_pool_creation_failure_returns_none(self, mock_pool_class):
        self.assertIsNone(make_backend().get_pool())

    @patch("django_project.db.pool.ThreadedConnectionPool")
    def test_connection_comes_from_pool(self, mock_pool_class):
        conn = MagicMock()
        mock_pool_class.return_value.getconn.return_value = conn

        self.assertIs(make_backend().get_new_connection({}), conn)

    @patch("django_project.db.psycopg2_base.DatabaseWrapper.get_new_connection")
    @patch("django_project.db.pool.ThreadedConnectionPool")
    def test_exhausted_pool_falls_back_to_direct_connection(self, mock_pool_class, mock_direct):
        mock_pool_class.return_value.getconn.side_effect = pool.PoolError("exhausted")

        make_backend().get_new_connection({"dbname": "coparent"})

        mock_direct.assert_called_once_with({"dbname": "coparent"})

    @patch("django_project.db.pool.ThreadedConnectionPool")
    def test_close_returns_connection_to_pool(self, mock_pool_class):
        backend = make_backend()
        backend.get_pool()
        conn = MagicMock()
        backend.connection = conn

        backend.close()

        mock_pool_class.return_value.putconn.assert_called_once_with(conn)
        conn.close.assert_not_called()
        self.assertIsNone(backend.connection)

    @patch("django_project.db.pool.ThreadedConnectionPool")
    def test_close_direct_connection(self, mock_pool_class):
        mock_pool_class.return_value.putconn.side_effect = pool.PoolError("unkeyed connection")
        backend = make_backend()
        backend.get_pool()
        conn = MagicMock()
        backend.connection = conn

        backend.close()

        conn.close.assert_called_once()
        self.assertIsNone(backend.connection)

    def test_close_without_connection(self):
        backend = make_backend()
        backend.connection = None
        backend.close()

    @patch("django_project.db.pool.ThreadedConnectionPool")
    def test_close_all_pools(self, mock_pool_class):
        make_backend().get_pool()

        PostgreSQLPooledBackend.close_all_pools()

        mock_pool_class.return_value.closeall.assert_called_once()
        self.assertEqual(PostgreSQLPooledBackend._pools, {})
