"""
Health probing for the store and the text-generation service.
"""

from datetime import datetime, timezone
from typing import Literal

import requests
from pydantic import BaseModel, Field

from product_ingest.observability.logger import get_logger
from product_ingest.warehouse.store import ProductStore

logger = get_logger(__name__)


class ServiceHealth(BaseModel):
    database: bool
    text_generation: bool


class HealthReport(BaseModel):
    """
    Result of one health probe.

    ``status`` is "ok" only when every service answered.
    """

    status: Literal["ok", "degraded"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    store_mode: str
    services: ServiceHealth


class HealthChecker:
    """
    Probes the product store and the text-generation service independently.
    """

    def __init__(
        self,
        store: ProductStore,
        textgen_url: str,
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ):
        """
        Initialize checker.

        Args:
            store: Store handle
            textgen_url: Base URL of the text-generation service
            timeout: Per-probe timeout in seconds
            session: HTTP session (a new one if None)
        """
        self.store = store
        self.textgen_url = textgen_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def check(self) -> HealthReport:
        database = self.store.ping(timeout=self.timeout)
        text_generation = self._probe_text_generation()
        status = "ok" if database and text_generation else "degraded"

        logger.info(
            f"Health: {status}",
            extra={"database": database, "text_generation": text_generation},
        )
        return HealthReport(
            status=status,
            store_mode=self.store.mode,
            services=ServiceHealth(database=database, text_generation=text_generation),
        )

    def _probe_text_generation(self) -> bool:
        url = f"{self.textgen_url}/api/tags"
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Text-generation probe failed: {e}", extra={"url": url})
            return False
        return True
