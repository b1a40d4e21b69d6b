"""
Bounded psycopg3 connection pool for the live product store

This module provides a bounded connection pool shared by every concurrent
ingestion run. The pool is built once at process start and passed
explicitly to whatever needs it.
"""
import time
from contextlib import contextmanager

from psycopg import OperationalError
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from product_ingest.config import DatabaseSettings
from product_ingest.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnectionPool:
    """
    Shared pool of PostgreSQL connections (psycopg_pool, dict rows)

    At most ``max_size`` connections are open at once. Callers beyond the
    bound queue for up to ``timeout`` seconds, after which psycopg_pool
    raises PoolTimeout.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "bi_sync_data",
        user: str = "pipeline",
        password: str | None = None,
        min_size: int = 2,
        max_size: int = 10,
        timeout: float = 30.0,
    ) -> None:
        """
        Describe the pool; nothing connects until open()

        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Database user
            password: Database password
            min_size: Minimum pool size
            max_size: Maximum pool size
            timeout: Connection and acquisition timeout in seconds
        """
        if not password:
            raise ValueError(
                "The live product store needs a database password. "
                "Set DB_PASSWORD or database.password in the settings file."
            )

        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout

        self.conninfo = (
            f"host={host} "
            f"port={port} "
            f"dbname={database} "
            f"user={user} "
            f"password={password} "
            f"connect_timeout={max(1, int(timeout))}"
        )

        self._pool: ConnectionPool | None = None

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "DatabaseConnectionPool":
        return cls(
            host=settings.host,
            port=settings.port,
            database=settings.name,
            user=settings.user,
            password=settings.password,
            min_size=settings.pool_min,
            max_size=settings.pool_max,
            timeout=settings.pool_timeout,
        )

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            OperationalError: If connection fails after all retries
        """
        if self._pool is not None:
            return

        for attempt in range(1, max_retries + 1):
            pool = ConnectionPool(
                conninfo=self.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                # PoolTimeout subclasses OperationalError
                pool.open(wait=True, timeout=self.timeout)
                self._pool = pool
                logger.info(
                    f"Connection pool opened ({self.host}:{self.port}/{self.database})",
                    extra={"min_size": self.min_size, "max_size": self.max_size},
                )
                return
            except OperationalError as e:
                pool.close()
                logger.warning(
                    f"Connection attempt {attempt}/{max_retries} failed: {e}",
                    extra={"attempt": attempt},
                )
                if attempt < max_retries:
                    time.sleep(retry_delay)
                else:
                    raise OperationalError(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    ) from e

    def close(self) -> None:
        """Close every pooled connection; the pool can be reopened."""
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self, timeout: float | None = None):
        """
        Get a connection from the pool

        Args:
            timeout: Seconds to wait for a free connection (pool default if None)

        Yields:
            psycopg.Connection: Database connection

        Raises:
            RuntimeError: If pool is not open
            psycopg_pool.PoolTimeout: If no connection frees up in time
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection(timeout=timeout) as conn:
            yield conn

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
