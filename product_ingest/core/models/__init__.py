"""
Core data models for the product ingestion pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .batch_result import BatchResult, InsertOutcome, RunOutcome, RunState
from .cell import EMPTY, Cell, EmptyCell, NumberCell, TextCell, cell_from_value, text_or_empty
from .parsed_table import PREVIEW_ROWS, ParsedTable, build_preview
from .product_record import ProductRecord, RejectedRow
from .validation_result import ValidationResult

__all__ = [
    "Cell",
    "TextCell",
    "NumberCell",
    "EmptyCell",
    "EMPTY",
    "cell_from_value",
    "text_or_empty",
    "ParsedTable",
    "PREVIEW_ROWS",
    "build_preview",
    "ValidationResult",
    "ProductRecord",
    "RejectedRow",
    "InsertOutcome",
    "BatchResult",
    "RunState",
    "RunOutcome",
]
