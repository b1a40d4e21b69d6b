"""
The three structural checks applied to every parsed table.
"""

from product_ingest.core.models import ParsedTable

from .base_check import TableCheck


class EmptyHeaderCheck(TableCheck):
    """Fails when any header is blank after trimming."""

    def check(self, table: ParsedTable) -> str | None:
        if any(not header.strip() for header in table.headers):
            return "Some column headers are empty"
        return None

    @property
    def rule_type(self) -> str:
        return "empty_headers"


class RowLengthCheck(TableCheck):
    """
    Fails when rows do not have exactly one cell per header.

    Reports a single error with the number of offending rows.
    """

    def check(self, table: ParsedTable) -> str | None:
        expected = len(table.headers)
        inconsistent = sum(1 for row in table.rows if len(row) != expected)
        if inconsistent:
            noun = "row has" if inconsistent == 1 else "rows have"
            return f"{inconsistent} {noun} inconsistent column counts (expected {expected})"
        return None

    @property
    def rule_type(self) -> str:
        return "row_length"


class RowCountCheck(TableCheck):
    """Fails when the table has no data rows."""

    def check(self, table: ParsedTable) -> str | None:
        if table.total_rows == 0:
            return "No data rows found"
        return None

    @property
    def rule_type(self) -> str:
        return "row_count"
