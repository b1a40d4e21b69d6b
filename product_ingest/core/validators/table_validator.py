"""
TableValidator - runs every structural check and accumulates the failures.
"""

from product_ingest.core.models import ParsedTable, ValidationResult
from product_ingest.observability.logger import get_logger

from .base_check import TableCheck
from .structural_checks import EmptyHeaderCheck, RowCountCheck, RowLengthCheck

logger = get_logger(__name__)

DEFAULT_CHECKS: tuple[TableCheck, ...] = (
    EmptyHeaderCheck(),
    RowLengthCheck(),
    RowCountCheck(),
)


class TableValidator:
    """
    Accumulating validator for parsed tables.

    All checks always run, in a fixed order, so the error list is
    deterministic for a given table.
    """

    def __init__(self, checks: tuple[TableCheck, ...] | None = None):
        self.checks = checks if checks is not None else DEFAULT_CHECKS

    def validate(self, table: ParsedTable) -> ValidationResult:
        """
        Validate a table's structure.

        Args:
            table: The parsed table

        Returns:
            ValidationResult with one entry per failed check
        """
        errors = []
        for check in self.checks:
            message = check.check(table)
            if message is not None:
                errors.append(message)
                logger.debug(
                    f"Check {check.rule_type} failed for {table.source_name}",
                    extra={"rule_type": check.rule_type, "source_name": table.source_name},
                )

        return ValidationResult.from_errors(errors)


def validate(table: ParsedTable) -> ValidationResult:
    """Validate with the default checks."""
    return TableValidator().validate(table)
