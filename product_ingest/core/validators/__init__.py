"""
Structural validation for parsed tables.
"""

from .base_check import TableCheck
from .structural_checks import EmptyHeaderCheck, RowCountCheck, RowLengthCheck
from .table_validator import DEFAULT_CHECKS, TableValidator, validate

__all__ = [
    "TableCheck",
    "EmptyHeaderCheck",
    "RowLengthCheck",
    "RowCountCheck",
    "DEFAULT_CHECKS",
    "TableValidator",
    "validate",
]
