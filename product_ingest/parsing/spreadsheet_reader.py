"""
Spreadsheet reader for .xlsx (openpyxl) and legacy .xls (xlrd) workbooks.
"""

import io
from typing import Any, Iterable

import openpyxl
import xlrd

from product_ingest.core.errors import ParseError, ParseErrorKind
from product_ingest.core.models import EMPTY, NumberCell, ParsedTable, TextCell, cell_from_value


def _header_text(cell) -> str:
    if isinstance(cell, NumberCell):
        return cell.as_text()
    if isinstance(cell, TextCell):
        return cell.value
    return ""


def _last_populated(cells: list) -> int:
    """Index after the last non-empty cell (0 for an all-empty row)."""
    for index in range(len(cells) - 1, -1, -1):
        if not cells[index].is_empty:
            return index + 1
    return 0


def matrix_to_table(matrix: Iterable[Iterable[Any]], source_name: str) -> ParsedTable:
    """
    Turn a row-major matrix of workbook values into a ParsedTable.

    Fully empty rows are skipped. Every row, the header row included, is
    padded with empty cells to the widest populated row, so an absent
    cell reads as empty rather than shortening its row.

    Args:
        matrix: Row-major cell values of the first sheet
        source_name: Original filename

    Returns:
        ParsedTable tagged "spreadsheet"
    """
    cell_rows = []
    for values in matrix:
        cells = [cell_from_value(value) for value in values]
        if _last_populated(cells):
            cell_rows.append(cells)

    if not cell_rows:
        return ParsedTable.build([], [], source_name, "spreadsheet")

    width = max(_last_populated(cells) for cells in cell_rows)
    normalized = [cells[:width] + [EMPTY] * (width - len(cells)) for cells in cell_rows]

    headers = [_header_text(cell) for cell in normalized[0]]
    return ParsedTable.build(headers, normalized[1:], source_name, "spreadsheet")


class SpreadsheetReader:
    """
    Reads the first worksheet (by position, not name) of a workbook.
    """

    def read(self, raw: bytes, source_name: str, extension: str) -> ParsedTable:
        """
        Parse workbook bytes.

        Args:
            raw: File content
            source_name: Original filename
            extension: "xlsx" or "xls"

        Returns:
            ParsedTable tagged "spreadsheet"

        Raises:
            ParseError: DECODE_FAILURE for corrupt or mislabelled workbooks
        """
        try:
            if extension == "xls":
                matrix = self._read_xls(raw)
            else:
                matrix = self._read_xlsx(raw)
        except ParseError:
            raise
        except Exception as e:
            # openpyxl and xlrd raise a wide range of types for damaged files
            raise ParseError(
                ParseErrorKind.DECODE_FAILURE,
                source_name,
                f"Failed to read workbook: {type(e).__name__}: {e}",
            ) from e

        return matrix_to_table(matrix, source_name)

    def _read_xlsx(self, raw: bytes) -> list[tuple[Any, ...]]:
        workbook = openpyxl.load_workbook(io.BytesIO(raw), read_only=True, data_only=True)
        try:
            sheet = workbook.worksheets[0]
            return [tuple(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

    def _read_xls(self, raw: bytes) -> list[list[Any]]:
        book = xlrd.open_workbook(file_contents=raw, on_demand=True)
        try:
            sheet = book.sheet_by_index(0)
            matrix = []
            for row_index in range(sheet.nrows):
                matrix.append([
                    self._xls_value(cell, book.datemode)
                    for cell in sheet.row(row_index)
                ])
            return matrix
        finally:
            book.release_resources()

    @staticmethod
    def _xls_value(cell: xlrd.sheet.Cell, datemode: int) -> Any:
        if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
            return None
        if cell.ctype == xlrd.XL_CELL_DATE:
            return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
        if cell.ctype == xlrd.XL_CELL_BOOLEAN:
            return bool(cell.value)
        if cell.ctype == xlrd.XL_CELL_ERROR:
            return xlrd.error_text_from_code.get(cell.value, "#ERR")
        return cell.value
