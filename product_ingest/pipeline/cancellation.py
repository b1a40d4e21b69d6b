"""
Cooperative cancellation for ingestion runs.
"""

import threading

from product_ingest.core.errors import RunCancelled


class CancellationToken:
    """
    Thread-safe cancel flag checked by the orchestrator between steps.

    Cancelling after the bulk insert has been issued has no effect on
    that insert.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, state: str) -> None:
        if self._event.is_set():
            raise RunCancelled(state)
