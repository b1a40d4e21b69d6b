"""
Store boundary: connection pool, product stores, duplicate resolution and bulk insert.
"""

from .bulk_insert import BulkInserter
from .connection import DatabaseConnectionPool
from .duplicates import DuplicateResolver
from .factory import create_store
from .postgres_store import PostgresProductStore
from .simulated_store import SimulatedProductStore
from .store import NATURAL_KEY_COLUMN, PRODUCT_COLUMNS, ColumnInfo, ProductStore

__all__ = [
    "DatabaseConnectionPool",
    "ProductStore",
    "ColumnInfo",
    "PRODUCT_COLUMNS",
    "NATURAL_KEY_COLUMN",
    "SimulatedProductStore",
    "PostgresProductStore",
    "create_store",
    "DuplicateResolver",
    "BulkInserter",
]
