"""
Store boundary for the product table.

One interface, two substitutable implementations (simulated and live),
selected by configuration.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from pydantic import BaseModel

from product_ingest.core.models import ProductRecord

# Target table columns, in ProductRecord.as_row() order
PRODUCT_COLUMNS = (
    "product_code",
    "product_name",
    "category",
    "price",
    "description",
    "created_at",
)
NATURAL_KEY_COLUMN = PRODUCT_COLUMNS[0]


class ColumnInfo(BaseModel):
    """One column of the target table, as reported by the store."""

    column_name: str
    data_type: str
    is_nullable: bool = True


class ProductStore(ABC):
    """
    Abstract store holding the product table.

    Every round-trip accepts a timeout in seconds; exceeding it raises
    StoreTimeout. Any other failure raises StoreError. Implementations
    must be safe to share between concurrent runs.
    """

    @abstractmethod
    def existing_keys(self, keys: Iterable[str], timeout: float | None = None) -> set[str]:
        """
        Look up which natural keys already exist.

        Args:
            keys: Candidate natural keys
            timeout: Round-trip timeout in seconds

        Returns:
            The subset of keys present in the table
        """
        pass

    @abstractmethod
    def insert_many(self, records: Sequence[ProductRecord], timeout: float | None = None) -> int:
        """
        Insert all records in one atomic multi-row write.

        Args:
            records: Records with created_at already set
            timeout: Round-trip timeout in seconds

        Returns:
            Number of rows inserted
        """
        pass

    @abstractmethod
    def describe_table(self) -> list[ColumnInfo]:
        """Read-only introspection of the target table's columns."""
        pass

    @abstractmethod
    def ping(self, timeout: float | None = None) -> bool:
        """Return True when the store answers a trivial query."""
        pass

    @property
    @abstractmethod
    def mode(self) -> str:
        """Return "simulated" or "live"."""
        pass
