"""
Live product store backed by PostgreSQL (psycopg 3).

Every round-trip runs in its own transaction with a local
statement_timeout, and connection acquisition from the shared pool is
bounded by the same timeout.
"""

from contextlib import contextmanager
from typing import Iterable, Sequence

import psycopg
from psycopg import sql
from psycopg_pool import PoolTimeout

from product_ingest.core.errors import StoreError, StoreTimeout
from product_ingest.core.models import ProductRecord
from product_ingest.observability.logger import get_logger
from product_ingest.utils.validation import sanitize_sql_identifier

from .connection import DatabaseConnectionPool
from .store import NATURAL_KEY_COLUMN, PRODUCT_COLUMNS, ColumnInfo, ProductStore

logger = get_logger(__name__)

# PostgreSQL caps bind parameters per statement at 65535
MAX_ROWS_PER_STATEMENT = 65535 // len(PRODUCT_COLUMNS)


class PostgresProductStore(ProductStore):
    """
    Product table in a live PostgreSQL database.

    The table carries no unique constraint on product_code, so this store
    never relies on ON CONFLICT; duplicate detection happens upstream.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        table: str = "pim_product",
        default_timeout: float = 15.0,
    ):
        """
        Initialize the store.

        Args:
            pool: Open (or soon to be opened) connection pool
            table: Target table name
            default_timeout: Timeout for calls that do not pass one
        """
        self.pool = pool
        self.table = sanitize_sql_identifier(table, field_name="table")
        self.default_timeout = default_timeout

    @property
    def mode(self) -> str:
        return "live"

    @contextmanager
    def _round_trip(self, operation: str, timeout: float | None):
        """
        Yield a cursor inside a transaction bounded by a timeout.

        Translates pool and driver failures into StoreTimeout / StoreError.
        """
        timeout = timeout if timeout is not None else self.default_timeout
        try:
            with self.pool.get_connection(timeout=timeout) as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute(
                            "SELECT set_config('statement_timeout', %s, true)",
                            (f"{max(1, int(timeout * 1000))}ms",),
                        )
                        yield cur
        except PoolTimeout as e:
            raise StoreTimeout(operation, f"no pooled connection within {timeout:.2f}s") from e
        except psycopg.errors.QueryCanceled as e:
            raise StoreTimeout(operation, f"statement exceeded {timeout:.2f}s") from e
        except psycopg.Error as e:
            raise StoreError(operation, str(e)) from e
        except RuntimeError as e:
            # Raised by DatabaseConnectionPool when the pool is not open
            raise StoreError(operation, str(e)) from e

    def existing_keys(self, keys: Iterable[str], timeout: float | None = None) -> set[str]:
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return set()

        query = sql.SQL("SELECT DISTINCT {key} AS natural_key FROM {table} WHERE {key} = ANY(%s)").format(
            key=sql.Identifier(NATURAL_KEY_COLUMN),
            table=sql.Identifier(self.table),
        )
        with self._round_trip("existing_keys", timeout) as cur:
            cur.execute(query, (wanted,))
            return {row["natural_key"] for row in cur.fetchall()}

    def insert_many(self, records: Sequence[ProductRecord], timeout: float | None = None) -> int:
        if not records:
            return 0

        inserted = 0
        with self._round_trip("insert_many", timeout) as cur:
            # Chunks share one transaction, so the batch stays all-or-nothing
            for start in range(0, len(records), MAX_ROWS_PER_STATEMENT):
                chunk = records[start:start + MAX_ROWS_PER_STATEMENT]
                cur.execute(self._insert_statement(len(chunk)), self._flatten(chunk))
                inserted += cur.rowcount

        logger.debug(
            f"Inserted {inserted} rows into {self.table}",
            extra={"table": self.table, "inserted": inserted},
        )
        return inserted

    def describe_table(self) -> list[ColumnInfo]:
        query = """
            SELECT column_name, data_type, is_nullable
            FROM information_schema.columns
            WHERE table_name = %s AND table_schema = current_schema()
            ORDER BY ordinal_position
        """
        with self._round_trip("describe_table", None) as cur:
            cur.execute(query, (self.table,))
            rows = cur.fetchall()

        return [
            ColumnInfo(
                column_name=row["column_name"],
                data_type=row["data_type"],
                is_nullable=row["is_nullable"] == "YES",
            )
            for row in rows
        ]

    def ping(self, timeout: float | None = None) -> bool:
        try:
            with self._round_trip("ping", timeout) as cur:
                cur.execute("SELECT 1 AS ok")
                return cur.fetchone()["ok"] == 1
        except StoreError as e:
            logger.warning(f"Store ping failed: {e}", extra={"store_mode": self.mode})
            return False

    def _insert_statement(self, row_count: int) -> sql.Composed:
        row_placeholder = sql.SQL("({})").format(
            sql.SQL(", ").join(sql.Placeholder() for _ in PRODUCT_COLUMNS)
        )
        return sql.SQL("INSERT INTO {table} ({columns}) VALUES {values}").format(
            table=sql.Identifier(self.table),
            columns=sql.SQL(", ").join(sql.Identifier(name) for name in PRODUCT_COLUMNS),
            values=sql.SQL(", ").join(row_placeholder for _ in range(row_count)),
        )

    @staticmethod
    def _flatten(records: Sequence[ProductRecord]) -> list:
        params = []
        for record in records:
            params.extend(record.as_row())
        return params
