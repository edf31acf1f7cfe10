from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

import mysql.connector
from mysql.connector import pooling

logger = logging.getLogger(__name__)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    pool_size: int = 10
    pool_name: str = "epms_pool"


class DatabaseConnection:
    """Singleton-like DB connection factory backed by a connection pool.

    Note: The pool is created on first use so the app can start (and tests can
    build a container) without a reachable MySQL server. ``connect()`` hands out
    a pooled connection; calling ``close()`` on it returns it to the pool.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config
        self._pool: Optional[pooling.MySQLConnectionPool] = None
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    @property
    def config(self) -> DBConfig:
        return self._config

    def _get_pool(self) -> pooling.MySQLConnectionPool:
        with self._lock:
            if self._pool is None:
                size = max(1, min(int(self._config.pool_size), pooling.CNX_POOL_MAXSIZE))
                if size < int(self._config.pool_size):
                    logger.warning(
                        "DB pool size %s exceeds connector limit, using %s", self._config.pool_size, size
                    )
                self._pool = pooling.MySQLConnectionPool(
                    pool_name=self._config.pool_name,
                    pool_size=size,
                    pool_reset_session=True,
                    host=self._config.host,
                    port=int(self._config.port),
                    user=self._config.user,
                    password=self._config.password,
                    database=self._config.database,
                    charset="utf8mb4",
                    collation="utf8mb4_unicode_ci",
                )
                logger.info(
                    "DB pool ready: %s@%s:%s/%s (size=%s)",
                    self._config.user,
                    self._config.host,
                    self._config.port,
                    self._config.database,
                    size,
                )
            return self._pool

    def connect(self):
        return self._get_pool().get_connection()

    def ping(self) -> bool:
        """Return True when a pooled connection can run ``SELECT 1``."""
        try:
            conn = self.connect()
        except mysql.connector.Error:
            logger.warning("DB ping failed: cannot get connection", exc_info=True)
            return False
        try:
            cur = conn.cursor()
            try:
                cur.execute("SELECT 1")
                cur.fetchall()
            finally:
                cur.close()
            return True
        except mysql.connector.Error:
            logger.warning("DB ping failed", exc_info=True)
            return False
        finally:
            conn.close()
