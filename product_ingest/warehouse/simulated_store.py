"""
In-memory product store for local runs, demos and tests.
"""

import threading
import time
from typing import Iterable, Sequence

from product_ingest.core.errors import StoreError, StoreTimeout
from product_ingest.core.models import ProductRecord

from .store import PRODUCT_COLUMNS, ColumnInfo, ProductStore


# Mirrors docker/init-db.sql
_COLUMN_TYPES = {
    "product_code": "text",
    "product_name": "text",
    "category": "text",
    "price": "text",
    "description": "text",
    "created_at": "timestamp with time zone",
}


class SimulatedProductStore(ProductStore):
    """
    Thread-safe in-memory stand-in for the product table.

    Like the real table, it enforces no uniqueness: inserting a key twice
    stores it twice. Latency and one-shot failures can be injected to
    exercise timeout and retry paths.
    """

    def __init__(
        self,
        existing: Iterable[str] = (),
        latency: float = 0.0,
        reachable: bool = True,
    ):
        """
        Initialize the store.

        Args:
            existing: Natural keys already present
            latency: Simulated seconds per round-trip
            reachable: Whether ping() succeeds
        """
        self._lock = threading.Lock()
        self._rows: list[ProductRecord] = [ProductRecord(natural_key=key) for key in existing]
        self._failures: dict[str, tuple[Exception, bool]] = {}
        self.latency = latency
        self.reachable = reachable
        self.existing_keys_calls = 0
        self.insert_calls = 0

    @property
    def mode(self) -> str:
        return "simulated"

    @property
    def rows(self) -> list[ProductRecord]:
        with self._lock:
            return list(self._rows)

    def keys(self) -> list[str]:
        return [row.natural_key for row in self.rows]

    def inject_failure(self, operation: str, error: Exception, commit: bool = False) -> None:
        """
        Make the next call of an operation fail.

        Args:
            operation: "existing_keys" or "insert_many"
            error: Exception to raise
            commit: For inserts, apply the write before raising, as when
                a timeout hides a write that did land
        """
        with self._lock:
            self._failures[operation] = (error, commit)

    def existing_keys(self, keys: Iterable[str], timeout: float | None = None) -> set[str]:
        wanted = set(keys)
        with self._lock:
            self.existing_keys_calls += 1
        self._simulate_round_trip("existing_keys", timeout)

        failure = self._take_failure("existing_keys")
        if failure is not None:
            raise failure[0]

        with self._lock:
            return {row.natural_key for row in self._rows if row.natural_key in wanted}

    def insert_many(self, records: Sequence[ProductRecord], timeout: float | None = None) -> int:
        with self._lock:
            self.insert_calls += 1
        self._simulate_round_trip("insert_many", timeout)

        failure = self._take_failure("insert_many")
        if failure is not None:
            error, commit = failure
            if commit:
                self._append(records)
            raise error

        self._append(records)
        return len(records)

    def describe_table(self) -> list[ColumnInfo]:
        return [
            ColumnInfo(column_name=name, data_type=_COLUMN_TYPES[name], is_nullable=name != "product_code")
            for name in PRODUCT_COLUMNS
        ]

    def ping(self, timeout: float | None = None) -> bool:
        return self.reachable

    def _append(self, records: Sequence[ProductRecord]) -> None:
        with self._lock:
            self._rows.extend(records)

    def _take_failure(self, operation: str) -> tuple[Exception, bool] | None:
        with self._lock:
            return self._failures.pop(operation, None)

    def _simulate_round_trip(self, operation: str, timeout: float | None) -> None:
        if not self.reachable:
            raise StoreError(operation, "simulated store is unreachable")
        if self.latency <= 0:
            return
        if timeout is not None and self.latency > timeout:
            time.sleep(timeout)
            raise StoreTimeout(operation, f"no response within {timeout:.2f}s")
        time.sleep(self.latency)
