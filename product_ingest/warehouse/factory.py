"""
Store construction from configuration.
"""

from product_ingest.config import IngestSettings
from product_ingest.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .postgres_store import PostgresProductStore
from .simulated_store import SimulatedProductStore
from .store import ProductStore

logger = get_logger(__name__)


def create_store(
    settings: IngestSettings,
    pool: DatabaseConnectionPool | None = None,
) -> ProductStore:
    """
    Build the store selected by ``settings.store.mode``.

    Args:
        settings: Process settings
        pool: Pool for the live store; built (unopened) from settings if None

    Returns:
        SimulatedProductStore or PostgresProductStore
    """
    if settings.store.mode == "simulated":
        logger.info("Using simulated product store")
        return SimulatedProductStore()

    pool = pool or DatabaseConnectionPool.from_settings(settings.database)
    logger.info(
        f"Using live product store ({settings.database.host}:{settings.database.port}/"
        f"{settings.database.name}.{settings.store.table})"
    )
    return PostgresProductStore(
        pool,
        table=settings.store.table,
        default_timeout=settings.store.timeout_seconds,
    )
