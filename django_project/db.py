"""
PostgreSQL database backend with psycopg2 connection pooling.

Reactor tasks and the minute-by-minute reminder dispatcher open many short
transactions from Celery workers; pooling keeps each worker on a small set
of reused connections.

Usage in settings.py:
    DATABASES = {
        "default": {
            "ENGINE": "django_project.db.PostgreSQLPooledBackend",
            "POOL": {"MIN_SIZE": 2, "MAX_SIZE": 10},
            ...
        }
    }

Pool sizes fall back to the DB_POOL_MIN_SIZE / DB_POOL_MAX_SIZE
environment variables.
"""

import logging
import os
from threading import RLock

from django.db.backends.postgresql import base as psycopg2_base
from psycopg2 import pool

logger = logging.getLogger(__name__)


class PostgreSQLPooledBackend(psycopg2_base.DatabaseWrapper):
    """PostgreSQL backend that borrows connections from a shared pool."""

    # Class-level connection pools, one per (host, port, name, user)
    _pools = {}
    _pools_lock = RLock()

    def _get_pool_key(self):
        return (
            self.settings_dict.get("HOST"),
            self.settings_dict.get("PORT"),
            self.settings_dict.get("NAME"),
            self.settings_dict.get("USER"),
        )

    def _get_pool_sizes(self):
        options = self.settings_dict.get("POOL") or {}
        min_size = int(options.get("MIN_SIZE", os.environ.get("DB_POOL_MIN_SIZE", "2")))
        max_size = int(options.get("MAX_SIZE", os.environ.get("DB_POOL_MAX_SIZE", "10")))
        return min_size, max(min_size, max_size)

    def _get_dsn(self):
        settings = self.settings_dict
        return (
            f"dbname={settings.get('NAME')} "
            f"user={settings.get('USER')} "
            f"password={settings.get('PASSWORD')} "
            f"host={settings.get('HOST')} "
            f"port={settings.get('PORT') or 5432}"
        )

    def get_pool(self):
        """Return the pool for this database, creating it on first use.

        Returns None when the pool cannot be created; callers then fall back
        to a plain connection.
        """
        pool_key = self._get_pool_key()
        with self._pools_lock:
            if pool_key in self._pools:
                return self._pools[pool_key]

            min_size, max_size = self._get_pool_sizes()
            try:
                pool_obj = pool.ThreadedConnectionPool(
                    min_size,
                    max_size,
                    dsn=self._get_dsn(),
                    connect_timeout=self.settings_dict.get("OPTIONS", {}).get(
                        "connect_timeout", 10
                    ),
                )
            except Exception as e:
                logger.error(
                    f"Failed to create connection pool: {e}",
                    extra={"host": pool_key[0], "database": pool_key[2]},
                )
                return None
            self._pools[pool_key] = pool_obj
            logger.info(
                "Created database connection pool",
                extra={"database": pool_key[2], "min_size": min_size, "max_size": max_size},
            )
            return pool_obj

    def get_new_connection(self, conn_params):
        pool_obj = self.get_pool()
        if pool_obj is None:
            return super().get_new_connection(conn_params)
        try:
            return pool_obj.getconn()
        except pool.PoolError as e:
            logger.warning(f"Connection pool exhausted, opening a direct connection: {e}")
            return super().get_new_connection(conn_params)

    def close(self):
        """Return the connection to its pool instead of closing it."""
        if self.connection is None:
            return

        pool_obj = self._pools.get(self._get_pool_key())
        try:
            if pool_obj is not None:
                pool_obj.putconn(self.connection)
            else:
                self.connection.close()
        except pool.PoolError:
            # Not borrowed from the pool (direct fallback connection)
            self.connection.close()
        finally:
            self.connection = None

    @classmethod
    def close_all_pools(cls):
        with cls._pools_lock:
            for pool_obj in cls._pools.values():
                pool_obj.closeall()
            cls._pools.clear()
