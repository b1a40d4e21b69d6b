"""
ProductMapper - turns validated table rows into ProductRecords.
"""

from decimal import Decimal, InvalidOperation

from product_ingest.core.models import (
    Cell,
    NumberCell,
    ParsedTable,
    ProductRecord,
    RejectedRow,
    TextCell,
)
from product_ingest.observability.logger import get_logger

from .field_aliases import DEFAULT_ALIASES, TARGET_FIELDS

logger = get_logger(__name__)


def cell_text(cell: Cell | None) -> str | None:
    """Trimmed text of a populated cell, None for empty or absent cells."""
    if cell is None or cell.is_empty:
        return None
    if isinstance(cell, NumberCell):
        return cell.as_text()
    return cell.value.strip()


def coerce_price(cell: Cell | None) -> Decimal | str | None:
    """
    Best-effort price coercion.

    Numbers and numeric text become Decimal. Anything else is kept as
    the raw (trimmed) text rather than failing the row.
    """
    if cell is None or cell.is_empty:
        return None
    if isinstance(cell, NumberCell):
        return Decimal(str(cell.value))

    text = cell.value.strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        return text
    if not value.is_finite():
        return text
    return value


class ProductMapper:
    """
    Maps rows to ProductRecords through column aliases.

    Header matching is case-insensitive and ignores surrounding
    whitespace. For each target field the first alias whose column holds a
    populated value wins. Rows with no populated natural key are rejected.
    """

    def __init__(self, aliases: dict[str, tuple[str, ...]] | None = None):
        """
        Initialize mapper.

        Args:
            aliases: Target field -> ordered header aliases (defaults apply)
        """
        self.aliases = dict(DEFAULT_ALIASES)
        if aliases:
            self.aliases.update(aliases)

    def map(self, table: ParsedTable) -> tuple[list[ProductRecord], list[RejectedRow]]:
        """
        Map every data row.

        Args:
            table: A table that passed validation

        Returns:
            Tuple of (accepted records, rejected rows), both in row order
        """
        columns = self._resolve_columns(table.headers)
        accepted: list[ProductRecord] = []
        rejected: list[RejectedRow] = []

        for row_number, row in enumerate(table.rows, start=1):
            key_cell = self._first_populated(row, columns["natural_key"])
            natural_key = cell_text(key_cell)
            if not natural_key:
                rejected.append(
                    RejectedRow(row_number=row_number, cells=row, reason="Missing product code")
                )
                continue

            accepted.append(
                ProductRecord(
                    natural_key=natural_key,
                    name=cell_text(self._first_populated(row, columns["name"])),
                    category=cell_text(self._first_populated(row, columns["category"])),
                    price=coerce_price(self._first_populated(row, columns["price"])),
                    description=cell_text(self._first_populated(row, columns["description"])),
                )
            )

        if rejected:
            logger.info(
                f"Rejected {len(rejected)} of {table.total_rows} rows without a product code",
                extra={"source_name": table.source_name, "rejected": len(rejected)},
            )
        return accepted, rejected

    def _resolve_columns(self, headers: list[str]) -> dict[str, list[int]]:
        """Column indexes per target field, in alias order."""
        normalized = [header.strip().lower() for header in headers]
        columns = {}
        for field_name in TARGET_FIELDS:
            indexes = []
            for alias in self.aliases[field_name]:
                indexes.extend(i for i, header in enumerate(normalized) if header == alias)
            columns[field_name] = indexes
        return columns

    @staticmethod
    def _first_populated(row: list[Cell], indexes: list[int]) -> Cell | None:
        for index in indexes:
            if index < len(row) and not row[index].is_empty:
                return row[index]
        return None
