"""
Bulk insert of fresh product records.

The whole batch goes to the store in one multi-row write. A failed write
reports zero inserted rows; partial success is never assumed.
"""

from datetime import datetime, timezone
from typing import Callable

from product_ingest.core.errors import StoreError, StoreTimeout
from product_ingest.core.models import InsertOutcome, ProductRecord
from product_ingest.observability.logger import get_logger
from product_ingest.observability.metrics import (
    increment_counter,
    store_round_trip_seconds,
    store_timeouts_total,
    track_duration,
)

from .store import ProductStore

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BulkInserter:
    """
    Writes records to the product table in a single multi-row insert.
    """

    def __init__(
        self,
        store: ProductStore,
        timeout: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize inserter.

        Args:
            store: Store handle shared by the process
            timeout: Round-trip timeout in seconds
            clock: Source of the created_at timestamp
        """
        self.store = store
        self.timeout = timeout
        self.clock = clock

    def insert(self, records: list[ProductRecord]) -> InsertOutcome:
        """
        Insert records, stamping created_at at write time.

        Args:
            records: Fresh records (already checked for duplicates)

        Returns:
            InsertOutcome; on failure inserted_count is 0 and first_error
            holds the StoreError or StoreTimeout
        """
        if not records:
            return InsertOutcome(inserted_count=0)

        created_at = self.clock()
        stamped = [record.stamped(created_at) for record in records]

        try:
            with track_duration(store_round_trip_seconds, operation="insert_many"):
                inserted = self.store.insert_many(stamped, timeout=self.timeout)
        except StoreTimeout as e:
            increment_counter(store_timeouts_total, operation="insert_many")
            logger.warning(
                f"Bulk insert of {len(records)} rows timed out; outcome unknown",
                extra={"requested": len(records), "error_type": e.kind},
            )
            return InsertOutcome(inserted_count=0, first_error=e)
        except StoreError as e:
            logger.error(
                f"Bulk insert of {len(records)} rows failed: {e}",
                extra={"requested": len(records), "error_type": e.kind},
            )
            return InsertOutcome(inserted_count=0, first_error=e)

        logger.info(f"Inserted {inserted} rows", extra={"inserted": inserted})
        return InsertOutcome(inserted_count=inserted)
