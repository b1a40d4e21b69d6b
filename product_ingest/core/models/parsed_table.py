"""
ParsedTable model: the canonical header + rows representation every parser
converges to.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .cell import Cell

PREVIEW_ROWS = 10

SourceFormat = Literal["spreadsheet", "csv", "delimited"]


def build_preview(
    headers: list[str], rows: list[list[Any]], limit: int = PREVIEW_ROWS
) -> list[dict[str, Any]]:
    """
    Build the display preview by positional zip of headers and rows.

    Missing trailing values map to None. Duplicate headers keep the
    right-most value, as a mapping can hold only one entry per name.
    """
    preview = []
    for row in rows[:limit]:
        entry: dict[str, Any] = {}
        for index, header in enumerate(headers):
            entry[header] = row[index].display() if index < len(row) else None
        preview.append(entry)
    return preview


class ParsedTable(BaseModel):
    """
    Canonical output of parsing (immutable once built).

    Attributes:
        headers: Column names in source order (blanks/duplicates allowed)
        rows: Data rows, each a list of cells
        preview: First rows as header -> value mappings (display only)
        total_rows: Number of data rows (header row excluded)
        source_name: Original filename
        source_format: "spreadsheet", "csv" or "delimited"
        delimiter: Sniffed delimiter for delimited sources
    """

    model_config = ConfigDict(frozen=True)

    headers: list[str]
    rows: list[list[Cell]]
    preview: list[dict[str, Any]] = Field(default_factory=list)
    total_rows: int = Field(..., ge=0)
    source_name: str
    source_format: SourceFormat
    delimiter: str | None = None

    @model_validator(mode="after")
    def check_counts(self) -> "ParsedTable":
        if self.total_rows != len(self.rows):
            raise ValueError(
                f"total_rows ({self.total_rows}) must equal number of rows ({len(self.rows)})"
            )
        if len(self.preview) > min(PREVIEW_ROWS, len(self.rows)):
            raise ValueError("preview cannot hold more rows than the table")
        return self

    @classmethod
    def build(
        cls,
        headers: list[str],
        rows: list[list[Any]],
        source_name: str,
        source_format: SourceFormat,
        delimiter: str | None = None,
    ) -> "ParsedTable":
        """Create a table, deriving preview and total_rows from the rows."""
        return cls(
            headers=headers,
            rows=rows,
            preview=build_preview(headers, rows),
            total_rows=len(rows),
            source_name=source_name,
            source_format=source_format,
            delimiter=delimiter,
        )
