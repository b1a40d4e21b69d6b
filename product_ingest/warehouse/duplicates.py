"""
Duplicate resolution against the product table.
"""

from product_ingest.core.errors import StoreTimeout
from product_ingest.core.models import ProductRecord
from product_ingest.observability.logger import get_logger
from product_ingest.observability.metrics import (
    increment_counter,
    store_round_trip_seconds,
    store_timeouts_total,
    track_duration,
)

from .store import ProductStore

logger = get_logger(__name__)


class DuplicateResolver:
    """
    Partitions candidate records into fresh and already-present ones.

    Issues exactly one existence query per batch, none for an empty batch.
    Both partitions keep the input order.
    """

    def __init__(self, store: ProductStore, timeout: float | None = None):
        """
        Initialize resolver.

        Args:
            store: Store handle shared by the process
            timeout: Round-trip timeout in seconds
        """
        self.store = store
        self.timeout = timeout

    def resolve(
        self, candidates: list[ProductRecord]
    ) -> tuple[list[ProductRecord], list[ProductRecord]]:
        """
        Split candidates by whether their natural key already exists.

        Args:
            candidates: Mapped records

        Returns:
            Tuple of (fresh, duplicates)

        Raises:
            StoreTimeout: The lookup exceeded the timeout
            StoreError: The lookup failed
        """
        if not candidates:
            return [], []

        keys = list(dict.fromkeys(record.natural_key for record in candidates))
        try:
            with track_duration(store_round_trip_seconds, operation="existing_keys"):
                existing = self.store.existing_keys(keys, timeout=self.timeout)
        except StoreTimeout:
            increment_counter(store_timeouts_total, operation="existing_keys")
            raise

        fresh = [record for record in candidates if record.natural_key not in existing]
        duplicates = [record for record in candidates if record.natural_key in existing]

        logger.info(
            f"Resolved {len(candidates)} candidates: {len(fresh)} fresh, {len(duplicates)} duplicates",
            extra={"fresh": len(fresh), "duplicates": len(duplicates)},
        )
        return fresh, duplicates
