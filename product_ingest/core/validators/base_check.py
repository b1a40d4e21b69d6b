"""
Base interface for structural table checks.

All checks inherit from TableCheck and implement check(). A check returns
an error message instead of raising, so the validator can accumulate
every problem in one pass.
"""

from abc import ABC, abstractmethod

from product_ingest.core.models import ParsedTable


class TableCheck(ABC):
    """
    Abstract base class for structural checks over a ParsedTable.

    Each check implements a single rule type (empty_headers,
    row_length, row_count).
    """

    @abstractmethod
    def check(self, table: ParsedTable) -> str | None:
        """
        Inspect a table.

        Args:
            table: The parsed table

        Returns:
            One aggregate error message, or None when the check passes
        """
        pass

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(rule_type={self.rule_type})"
